"""Telegram notifications for GitHub releases"""

__version__ = "2.0.0"
