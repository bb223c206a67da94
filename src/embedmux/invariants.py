"""Invariant markers."""

from __future__ import annotations

from typing import NoReturn

from embedmux.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as unreachable.

    The optional env payload is carried on the raised NeverThrown for
    diagnostics; it is not evaluated.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)
