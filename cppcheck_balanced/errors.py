# cppcheck_balanced/errors.py
"""
Error types for the balanced-call checker.

Error Hierarchy
───────────────
┌──────────────────────────────────────────────────────────────┐
│  BalancedError (base)                                        │
│  ├── ConfigError          - protocol-family input problems   │
│  │   └── ConfigSyntaxError - malformed / truncated family    │
│  └── EngineError          - host engine misuse               │
└──────────────────────────────────────────────────────────────┘

Only configuration problems are ever raised out of a parser, and the
loader in :mod:`cppcheck_balanced.config` recovers from them by keeping
the families parsed so far.  Contradictory analysis evidence is not an
error: it is what the checker reports as a diagnostic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SourceSpan:
    """A position inside a configuration file."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        if self.line:
            return f"{self.file}:{self.line}"
        return self.file or "<unknown>"


class BalancedError(Exception):
    """Base exception for all cppcheck-balanced errors."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.span = span or SourceSpan()
        self.cause = cause

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        return f"{self.span}: error: {self.message}"

    def __str__(self) -> str:
        if self.span.file or self.span.line:
            return self.to_gcc_format()
        return self.message


# ───────────────────────────────────────────────────────────────────────────────
# CONFIGURATION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ConfigError(BalancedError):
    """Problem with a protocol-family description."""


class ConfigSyntaxError(ConfigError):
    """A family description is malformed or truncated."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        family: str = "",
        got: str = "",
        **kwargs,
    ) -> None:
        super().__init__(message, span=span, **kwargs)
        self.family = family
        self.got = got


# ───────────────────────────────────────────────────────────────────────────────
# ENGINE ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class EngineError(BalancedError):
    """The host engine was driven outside its contract."""


__all__ = [
    "SourceSpan",
    "BalancedError",
    "ConfigError",
    "ConfigSyntaxError",
    "EngineError",
]
