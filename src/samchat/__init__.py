"""SamChat: a personality-switchable AI chat client."""

__version__ = "0.1.0"
