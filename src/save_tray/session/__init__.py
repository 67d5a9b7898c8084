"""Host implementations: in-memory session and file-backed document store."""
