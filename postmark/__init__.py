"""Compose MIME e-mail messages, write them out, and hand them to a sender."""

__version__ = "0.1.0"