"""HTTP surface: the authority endpoint served by coordinator-capable peers."""
