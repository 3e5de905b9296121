"""Sync image galleries to Telegraph pages, with a Telegram bot in front."""

__version__ = "0.1.0"