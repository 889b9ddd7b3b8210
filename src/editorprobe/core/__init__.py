"""Core value types shared by the harness and the simulated host."""

from .positions import CursorPosition, SelectionRange, WordSpan, word_at

__all__ = ["CursorPosition", "SelectionRange", "WordSpan", "word_at"]
