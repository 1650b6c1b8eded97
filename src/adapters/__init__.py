"""Adapters binding the core ports to HTTP, Telegram and the filesystem."""
