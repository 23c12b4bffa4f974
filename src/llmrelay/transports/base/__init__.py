"""Reusable transport base classes."""

from .chat import ChatTransport

__all__ = ["ChatTransport"]
