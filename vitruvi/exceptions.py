"""Domain exceptions shared across Vitruvi modules."""

from __future__ import annotations


class VitruviError(Exception):
    """Base class for domain errors."""


class InsufficientDataError(VitruviError):
    """Raised when a computation needs more analysis history than exists."""

    def __init__(self, message: str, available: int = 0):
        super().__init__(message)
        self.available = available


class MessagingError(VitruviError):
    """Raised when the SMS / WhatsApp gateway rejects a message."""
