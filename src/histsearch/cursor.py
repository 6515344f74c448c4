"""Editable query text with a caret."""

from __future__ import annotations

from histsearch.settings import WordJumpMode


def _char_class(ch: str, word_chars: str) -> int:
    if ch.isspace():
        return 0
    if ch in word_chars:
        return 1
    return 2


class Cursor:
    """Editable text buffer with caret position tracking.

    The caret is an index between characters: 0 is before the first
    character and len(text) is after the last. Every operation keeps it
    in that range.
    """

    def __init__(self, text: str = "") -> None:
        self._text = text
        self._position = 0

    @property
    def text(self) -> str:
        return self._text

    @property
    def position(self) -> int:
        return self._position

    def substring(self) -> str:
        """Text before the caret."""
        return self._text[: self._position]

    def insert(self, ch: str) -> None:
        self._text = self._text[: self._position] + ch + self._text[self._position :]
        self._position += len(ch)

    def back(self) -> str | None:
        """Delete the character before the caret (Backspace)."""
        if self._position == 0:
            return None
        removed = self._text[self._position - 1]
        self._text = self._text[: self._position - 1] + self._text[self._position :]
        self._position -= 1
        return removed

    def remove(self) -> str | None:
        """Delete the character under the caret (Delete)."""
        if self._position >= len(self._text):
            return None
        removed = self._text[self._position]
        self._text = self._text[: self._position] + self._text[self._position + 1 :]
        return removed

    def left(self) -> None:
        if self._position > 0:
            self._position -= 1

    def right(self) -> None:
        if self._position < len(self._text):
            self._position += 1

    def start(self) -> None:
        self._position = 0

    def end(self) -> None:
        self._position = len(self._text)

    def clear(self) -> None:
        self._text = ""
        self._position = 0

    def clear_to_start(self) -> None:
        self._text = self._text[self._position :]
        self._position = 0

    def clear_to_end(self) -> None:
        self._text = self._text[: self._position]

    def next_word(self, word_chars: str, mode: WordJumpMode) -> None:
        self._position = self._next_word_position(word_chars, mode)

    def prev_word(self, word_chars: str, mode: WordJumpMode) -> None:
        self._position = self._prev_word_position(word_chars, mode)

    def remove_next_word(self, word_chars: str, mode: WordJumpMode) -> None:
        end = self._next_word_position(word_chars, mode)
        self._text = self._text[: self._position] + self._text[end:]

    def remove_prev_word(self, word_chars: str, mode: WordJumpMode) -> None:
        start = self._prev_word_position(word_chars, mode)
        self._text = self._text[:start] + self._text[self._position :]
        self._position = start

    def _next_word_position(self, word_chars: str, mode: WordJumpMode) -> int:
        text = self._text
        pos = self._position
        length = len(text)

        if mode is WordJumpMode.EMACS:
            # Skip separators, then the word: lands after the end of the next word
            while pos < length and text[pos] not in word_chars:
                pos += 1
            while pos < length and text[pos] in word_chars:
                pos += 1
            return pos

        # subl: skip whitespace, then one run of same-class characters
        while pos < length and text[pos].isspace():
            pos += 1
        if pos < length:
            run = _char_class(text[pos], word_chars)
            while pos < length and _char_class(text[pos], word_chars) == run:
                pos += 1
        return pos

    def _prev_word_position(self, word_chars: str, mode: WordJumpMode) -> int:
        text = self._text
        pos = self._position

        if mode is WordJumpMode.EMACS:
            while pos > 0 and text[pos - 1] not in word_chars:
                pos -= 1
            while pos > 0 and text[pos - 1] in word_chars:
                pos -= 1
            return pos

        while pos > 0 and text[pos - 1].isspace():
            pos -= 1
        if pos > 0:
            run = _char_class(text[pos - 1], word_chars)
            while pos > 0 and _char_class(text[pos - 1], word_chars) == run:
                pos -= 1
        return pos
