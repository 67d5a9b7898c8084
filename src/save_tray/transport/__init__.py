"""Transports that carry delegated writes between peers."""
