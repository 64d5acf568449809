"""Wanda community content-trust and moderation core."""

__version__ = "0.1.0"
