# server/services/text_matcher.py
"""Keystroke scoring against a target text."""

import re
from dataclasses import dataclass
from typing import Optional

from config.settings import ERROR_THRESHOLD, TAB_FALLBACK

_INDENT = re.compile(r"[ \t]+")


@dataclass(frozen=True)
class MatchResult:
    """Outcome of evaluating the input buffer once."""

    correct: int
    errors: int
    total: int
    new_error: bool = False
    advanced: bool = False
    threshold: bool = False
    completed: bool = False


class TextMatcher:
    """Compares a live input buffer against a target string.

    The matcher only reports events; reacting to them (sounds, damage,
    snippet swaps) is the caller's job. Once the error count reaches the
    threshold the matcher latches and rejects input until a new target is
    loaded.
    """

    def __init__(self, threshold: int = ERROR_THRESHOLD):
        self.threshold = threshold
        self.target: Optional[str] = None
        self.buffer = ""
        self.errors = 0
        self.correct = 0
        self.latched = False
        self.locked = False

    def load(self, target: Optional[str]):
        """Install a new target text and clear the buffer and latch."""
        self.target = target
        self.buffer = ""
        self.errors = 0
        self.correct = 0
        self.latched = False

    def lock(self):
        """Reject all input until the next reset."""
        self.locked = True

    def reset(self):
        self.load(None)
        self.locked = False

    @property
    def accepts_input(self) -> bool:
        return self.target is not None and not self.latched and not self.locked

    def evaluate(self, buffer: str) -> MatchResult:
        """Score a buffer and update the latch.

        Characters typed past the end of the target count as errors.
        """
        target = self.target or ""
        correct = 0
        errors = 0
        for i, char in enumerate(buffer):
            if i < len(target) and char == target[i]:
                correct += 1
            else:
                errors += 1

        new_error = errors > self.errors
        advanced = not new_error and len(buffer) > len(self.buffer)

        threshold = False
        if errors >= self.threshold and not self.latched:
            self.latched = True
            threshold = True

        self.buffer = buffer
        self.errors = errors
        self.correct = correct

        return MatchResult(
            correct=correct,
            errors=errors,
            total=len(target),
            new_error=new_error,
            advanced=advanced,
            threshold=threshold,
            completed=buffer == target and errors == 0,
        )

    def set_input(self, value: str) -> Optional[MatchResult]:
        """Replace the whole buffer, as a text area reports its value."""
        if not self.accepts_input:
            return None
        return self.evaluate(value)

    def type_text(self, text: str) -> Optional[MatchResult]:
        if not self.accepts_input:
            return None
        return self.evaluate(self.buffer + text)

    def backspace(self) -> Optional[MatchResult]:
        if not self.accepts_input or not self.buffer:
            return None
        return self.evaluate(self.buffer[:-1])

    def press_tab(self) -> Optional[MatchResult]:
        """Insert the target's indentation at the cursor, or two spaces."""
        if not self.accepts_input:
            return None
        return self.evaluate(self.buffer + self.indent_at_cursor())

    def indent_at_cursor(self) -> str:
        remaining = (self.target or "")[len(self.buffer):]
        match = _INDENT.match(remaining)
        return match.group(0) if match else TAB_FALLBACK
