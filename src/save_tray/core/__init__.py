"""Core infrastructure: the event bus and event type constants."""
