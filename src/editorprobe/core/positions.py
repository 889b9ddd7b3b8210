"""Structured helpers for cursor positions, selections and word spans."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(slots=True, frozen=True, order=True)
class CursorPosition(Sequence[int]):
    """One-based ``(line, column)`` location inside a document."""

    line: int
    column: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "line", self._coerce_index(self.line, "line"))
        object.__setattr__(self, "column", self._coerce_index(self.column, "column"))

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"CursorPosition {label} must be an integer") from exc
        if number < 1:
            raise ValueError(f"CursorPosition {label} must be positive, got {number}")
        return number

    def __len__(self) -> int:
        return 2

    def __getitem__(self, index: int | slice) -> int | tuple[int, ...]:
        if isinstance(index, slice):
            return self.to_tuple()[index]
        if index == 0:
            return self.line
        if index == 1:
            return self.column
        raise IndexError("CursorPosition index out of range")

    def __iter__(self) -> Iterator[int]:
        yield self.line
        yield self.column

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"

    def to_tuple(self) -> tuple[int, int]:
        return (self.line, self.column)

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}

    def shifted(self, *, columns: int = 0) -> CursorPosition:
        """Return a position moved horizontally on the same line."""

        return CursorPosition(self.line, max(1, self.column + columns))

    @classmethod
    def from_value(cls, value: Any) -> CursorPosition:
        """Coerce mappings, ``(line, column)`` pairs and ``"12:4"`` strings."""

        if isinstance(value, CursorPosition):
            return value
        if isinstance(value, Mapping):
            line = value.get("line", value.get("lineNumber"))
            column = value.get("column")
            if line is None or column is None:
                raise ValueError("CursorPosition mappings require line and column keys")
            return cls(line, column)
        if isinstance(value, str):
            line_text, sep, column_text = value.partition(":")
            if not sep:
                raise ValueError(f"CursorPosition strings use 'line:column', got {value!r}")
            return cls(line_text.strip(), column_text.strip())
        if isinstance(value, Sequence) and not isinstance(value, bytes):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("CursorPosition sequences must have exactly two entries")
            return cls(seq[0], seq[1])
        raise TypeError(f"Unsupported CursorPosition input: {value!r}")


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """Half-open selection between two positions, normalised so start <= end."""

    start: CursorPosition
    end: CursorPosition

    def __post_init__(self) -> None:
        start = CursorPosition.from_value(self.start)
        end = CursorPosition.from_value(self.end)
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def is_caret(self) -> bool:
        return self.start == self.end

    @classmethod
    def on_line(cls, line: int, start_column: int, end_column: int) -> SelectionRange:
        """Return a single-line selection covering ``[start_column, end_column)``."""

        return cls(CursorPosition(line, start_column), CursorPosition(line, end_column))

    @classmethod
    def caret(cls, position: CursorPosition) -> SelectionRange:
        return cls(position, position)

    @classmethod
    def from_value(cls, value: Any) -> SelectionRange:
        if isinstance(value, SelectionRange):
            return value
        if isinstance(value, Mapping):
            if "line" in value:
                return cls.on_line(value["line"], value["start_column"], value["end_column"])
            return cls(value["start"], value["end"])
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
            return cls(value[0], value[1])
        raise TypeError(f"Unsupported SelectionRange input: {value!r}")


@dataclass(slots=True, frozen=True)
class WordSpan:
    """Word found under a position; columns are one-based and end-exclusive."""

    text: str
    start_column: int
    end_column: int


def is_word_char(char: str) -> bool:
    return char.isalnum() or char in "_$"


def word_at(line_text: str, column: int) -> WordSpan | None:
    """Return the identifier touching ``column`` on ``line_text``.

    A caret placed directly after a word still reports that word, matching the
    way editors resolve the word at the cursor.
    """

    if column < 1 or column > len(line_text) + 1:
        return None
    index = column - 1
    if index < len(line_text) and is_word_char(line_text[index]):
        start = index
    elif index > 0 and is_word_char(line_text[index - 1]):
        start = index - 1
    else:
        return None
    while start > 0 and is_word_char(line_text[start - 1]):
        start -= 1
    end = start
    while end < len(line_text) and is_word_char(line_text[end]):
        end += 1
    return WordSpan(text=line_text[start:end], start_column=start + 1, end_column=end + 1)
