"""Failure taxonomy for an assembly run."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorReason(str, Enum):
    EMPTY_INPUT = "EMPTY_INPUT"
    FONT_UNAVAILABLE = "FONT_UNAVAILABLE"
    MALFORMED_SOURCE = "MALFORMED_SOURCE"


class AssemblyError(Exception):
    """Raised when a bundle cannot be produced. Nothing is output on failure."""

    def __init__(self, reason: ErrorReason, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.source = source

    def __repr__(self) -> str:
        return f"AssemblyError({self.reason.value}, {self.message!r}, source={self.source!r})"
