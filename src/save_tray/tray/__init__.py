"""Presentation-side helpers: tray view model and the bounded-retry watcher."""
