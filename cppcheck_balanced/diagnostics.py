"""
cppcheck_balanced/diagnostics.py
════════════════════════════════

Findings of the balanced-call checker and the suppression rules that
filter them before they are printed.

A :class:`Diagnostic` serializes to Cppcheck's JSON addon protocol (one
object per line on stdout, so the package can run as a
``cppcheck --addon`` script) or to a GCC-style line for editors.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum, auto
from fnmatch import fnmatch
from typing import Any, Dict, Iterable, List

_log = logging.getLogger(__name__)

ANY_ERROR = "*"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — FINDINGS
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Cppcheck severity names."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    INFORMATION = "information"


class Confidence(Enum):
    """
    HIGH   — one concrete path repeats the same side (``doubleBalancedCall``)
    MEDIUM — paths merged at a return disagree (``unbalancedReturn``); one
             of them may be infeasible
    """
    HIGH = auto()
    MEDIUM = auto()


@dataclass(frozen=True)
class SourceLocation:
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class Diagnostic:
    """
    One finding.

    ``extra`` carries the name of the function the finding is in; Cppcheck
    prints it next to the message.
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.MEDIUM
    cwe: int = 0
    checker_name: str = ""
    addon: str = "cppcheck-balanced"
    extra: str = ""

    def to_cppcheck_json(self) -> Dict[str, Any]:
        loc = self.location
        out: Dict[str, Any] = dict(
            file=loc.file,
            linenr=loc.line,
            column=loc.column,
            severity=self.severity.value,
            message=self.message,
            addon=self.addon,
            errorId=self.error_id,
            extra=self.extra,
        )
        if self.cwe:
            out["cwe"] = self.cwe
        return out

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """``file:line:col: severity: message [errorId]``"""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Suppression:
    """
    One suppression rule.

    ``file`` empty means every file, otherwise an exact name, a path
    suffix or a glob.  A non-zero ``line`` pins the rule to that line of
    exactly ``file`` and to the line after it, which is where a
    ``// cppcheck-suppress`` comment on its own line points.
    """
    error_id: str = ANY_ERROR
    file: str = ""
    line: int = 0

    def matches(self, diag: Diagnostic) -> bool:
        if self.error_id not in (ANY_ERROR, diag.error_id):
            return False
        loc = diag.location
        if self.line:
            return loc.file == self.file and loc.line - self.line in (0, 1)
        if self.file:
            return loc.file == self.file or loc.file.endswith(self.file) or fnmatch(loc.file, self.file)
        return True


class SuppressionManager:
    """
    The suppression rules of a run.

    Rules come from the command line (global), from callers (per file)
    and from the ``<suppressions>`` Cppcheck writes into each dump
    configuration (inline comments and ``--suppress`` options).

    >>> sm = SuppressionManager()
    >>> sm.add_file_suppression("unbalancedReturn", "legacy/*.c")
    >>> sm.add_global_suppression("doubleBalancedCall")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        self._rules: List[Suppression] = []

    def add(self, rule: Suppression) -> None:
        self._rules.append(rule)

    def add_global_suppression(self, error_id: str) -> None:
        self.add(Suppression(error_id))

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        self.add(Suppression(error_id, file_pattern))

    def add_inline_suppression(self, error_id: str, file: str, line: int) -> None:
        self.add(Suppression(error_id, file, line))

    def load_inline_suppressions(self, cfg: Any) -> None:
        """Turn ``cfg.suppressions`` of a dump configuration into rules."""
        loaded = 0
        for supp in getattr(cfg, "suppressions", None) or []:
            error_id = getattr(supp, "errorId", None)
            if not error_id:
                continue
            file = getattr(supp, "fileName", "") or ""
            line = int(getattr(supp, "lineNumber", 0) or 0) if file else 0
            self.add(Suppression(error_id, file, line))
            loaded += 1
        if loaded:
            _log.debug("%d suppression(s) from the dump", loaded)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        return any(rule.matches(diag) for rule in self._rules)

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]

    def __len__(self) -> int:
        return len(self._rules)


__all__ = [
    "DiagnosticSeverity",
    "Confidence",
    "SourceLocation",
    "Diagnostic",
    "Suppression",
    "SuppressionManager",
]
