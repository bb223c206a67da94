"""Exception types raised by embedmux."""

from __future__ import annotations


class EmbedmuxError(Exception):
    """Base class for embedmux errors."""


class CustomDataError(EmbedmuxError):
    """A custom data source could not be read."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class NeverThrown(EmbedmuxError):
    """Raised by never() when a path the core rules out is reached.

    The keyword environment passed to never() is kept on the exception so
    callers can log what state led there.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})
