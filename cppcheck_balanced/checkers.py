"""
cppcheck_balanced/checkers.py
═════════════════════════════

Checker framework and the balanced-call checker.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌───────────────────────────────────────────────────┐  │
  │  │              BalancedCallChecker                  │  │
  │  │   on_call │ audit_return │ after_function         │  │
  │  └─────────────────────────┬─────────────────────────┘  │
  │                            │ hooks                      │
  │  ┌─────────────────────────▼─────────────────────────┐  │
  │  │  PathEngine  ◄──  ctrlflow_graph.build_all_cfgs   │  │
  │  └─────────────────────────┬─────────────────────────┘  │
  │                            │                            │
  │  ┌─────────────────────────▼─────────────────────────┐  │
  │  │           SuppressionManager                      │  │
  │  │  // cppcheck-suppress  │  file-level  │  global   │  │
  │  └─────────────────────────┬─────────────────────────┘  │
  │                            │                            │
  │  ┌─────────────────────────▼─────────────────────────┐  │
  │  │        Diagnostic Formatter (JSON / text)         │  │
  │  └───────────────────────────────────────────────────┘  │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        — read options, load the protocol registry
  2. **collect_evidence()** — build CFGs, drive the engine
  3. **diagnose()**         — turn engine messages into diagnostics
  4. **report()**           — emit Diagnostics (filtered by suppressions)
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Set,
    Type,
)

from cppcheck_balanced.config import DEFAULT_PROJECT, load_protocol_registry
from cppcheck_balanced.ctrlflow_graph import CallSite, build_all_cfgs
from cppcheck_balanced.diagnostics import (
    Confidence,
    Diagnostic,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from cppcheck_balanced.errors import ConfigError
from cppcheck_balanced.path_engine import EngineMessage, HookKind, HostEngine, PathEngine
from cppcheck_balanced.protocol import ProtocolEntry, ProtocolRegistry
from cppcheck_balanced.side_state import (
    ObservationTracker,
    Side,
    TrackedObject,
    is_unbalanced,
    resolve_possible,
    start_state_for,
)

_log = logging.getLogger(__name__)

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Checker(ABC):
    """
    Abstract base class for all checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)``        — receive context, declare needs
      2. ``collect_evidence(ctx)``  — run or consume analyses
      3. ``diagnose(ctx)``          — correlate evidence into diagnostics
      4. ``report(ctx)``            — yield final diagnostics

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
      - Optionally override ``configure()`` for custom setup
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {}  # error_id → CWE number

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """Called before evidence collection.  Default does nothing."""
        pass

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        """Append diagnostics to ``self._diagnostics``."""
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Return final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def _emit(
        self,
        error_id: str,
        message: str,
        file: str,
        line: int,
        column: int = 0,
        severity: Optional[DiagnosticSeverity] = None,
        confidence: Confidence = Confidence.MEDIUM,
        extra: str = "",
    ) -> None:
        """Helper to create and store a diagnostic."""
        self._diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=severity or self.default_severity,
            location=SourceLocation(file=file, line=line, column=column),
            confidence=confidence,
            cwe=self.cwe_ids.get(error_id, 0),
            checker_name=self.name,
            extra=extra,
        ))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


@dataclass
class CheckerContext:
    """
    Shared context passed to every checker during execution.

    Attributes
    ----------
    cfg          : cppcheckdata.Configuration
    suppressions : SuppressionManager
    analyses     : results shared between checkers (keyed by name)
    options      : user-provided options dict; the balanced-call checker
                   reads ``balanced_funcs``, ``data_dir``, ``project``,
                   ``registry``, ``inline_calls`` and ``max_inline_depth``
    stats        : mutable dict for timing / counting statistics
    """
    cfg: Any  # cppcheckdata.Configuration
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    analyses: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def get_analysis(self, name: str) -> Any:
        return self.analyses.get(name)

    def set_analysis(self, name: str, result: Any) -> None:
        self.analyses[name] = result

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    Registry of available checkers.

    Usage
    -----
    >>> registry = CheckerRegistry()
    >>> registry.register(BalancedCallChecker)
    >>> checkers = registry.get_enabled()
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}
        self._disabled: Set[str] = set()

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def enable(self, name: str) -> None:
        self._disabled.discard(name)

    def get_enabled(self) -> List[Type[Checker]]:
        return [
            cls for name, cls in self._checkers.items()
            if name not in self._disabled
        ]

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    def filter_by_error_id(self, error_id: str) -> List[Type[Checker]]:
        """Return checkers that can produce the given error_id."""
        return [
            cls for cls in self._checkers.values()
            if error_id in cls.error_ids
        ]

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — BALANCED-CALL CHECKER
# ═════════════════════════════════════════════════════════════════════════

class BalancedCallChecker(Checker):
    """
    Checks that paired functions (lock/unlock, disable/enable, ...) are
    called in balance on every path through a function.

    Two findings:

    ``doubleBalancedCall``
        A LEFT (or RIGHT) function is called while some path already
        has the object on that side.
    ``unbalancedReturn``
        At a return point the paths that reach it disagree about the
        object's side, once the start state has been resolved.

    The checker never walks code itself.  :meth:`attach` registers its
    hooks with a :class:`HostEngine`; ``collect_evidence`` does that with
    the in-tree :class:`PathEngine` over CFGs built from the dump.
    """

    name: ClassVar[str] = "balanced-calls"
    description: ClassVar[str] = "Paired-call balance (lock/unlock, disable/enable)"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({
        "doubleBalancedCall", "unbalancedReturn",
    })
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {
        "doubleBalancedCall": 764,
        "unbalancedReturn": 667,
    }

    def __init__(self, registry: Optional[ProtocolRegistry] = None) -> None:
        super().__init__()
        self.registry = registry
        self.tracker = ObservationTracker()
        self.engine: Optional[HostEngine] = None
        self._messages: List[EngineMessage] = []

    # ── lifecycle ────────────────────────────────────────────────────

    def configure(self, ctx: CheckerContext) -> None:
        if self.registry is None:
            registry = ctx.get_option("registry")
            if registry is None:
                registry = load_protocol_registry(
                    path=ctx.get_option("balanced_funcs"),
                    data_dir=ctx.get_option("data_dir"),
                    project=ctx.get_option("project", DEFAULT_PROJECT),
                )
            self.registry = registry
        ctx.set_analysis("protocol_registry", self.registry)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        if not self.registry:
            _log.info("%s: no protocol functions registered", self.name)
            return
        cfgs = build_all_cfgs(ctx.cfg)
        engine = PathEngine(
            inline_calls=bool(ctx.get_option("inline_calls", False)),
            max_inline_depth=int(ctx.get_option("max_inline_depth", 1)),
        )
        self.attach(engine)
        self._messages = [m for m in engine.analyze_unit(cfgs) if m.owner == self.name]
        ctx.stats[f"{self.name}_functions"] = engine.stats["functions"]
        ctx.stats[f"{self.name}_calls"] = engine.stats["calls"]

    def diagnose(self, ctx: CheckerContext) -> None:
        for msg in self._messages:
            self._emit(
                error_id=msg.error_id,
                message=msg.message,
                file=msg.location.file,
                line=msg.location.line,
                column=msg.location.column,
                severity=msg.severity,
                confidence=Confidence.HIGH if msg.error_id == "doubleBalancedCall" else Confidence.MEDIUM,
                extra=msg.function,
            )

    # ── engine wiring ────────────────────────────────────────────────

    def attach(self, engine: HostEngine) -> None:
        """Register every hook of this checker with *engine*."""
        if self.registry is None:
            raise ConfigError("BalancedCallChecker.attach() needs a protocol registry")
        self.engine = engine
        for entry in self.registry:
            engine.add_function_hook(entry.function_name, self.on_call, entry)
        engine.add_hook(self.audit_return, HookKind.RETURN)
        engine.add_hook(self.on_function_end, HookKind.END_FUNC)
        engine.add_hook(self.after_function, HookKind.AFTER_FUNC)
        engine.add_unmatched_state_hook(self.name, start_state_for)

    def on_call(self, function_name: str, call: CallSite, entry: ProtocolEntry) -> None:
        """A registered function was called."""
        engine = self.engine
        if engine.inline_fn:
            return
        obj = entry.extract(call)
        if obj is None:
            return
        side: Side = entry.side
        sm = engine.get_sm_state(self.name, obj.name, obj.symbol)
        if sm is None:
            self.tracker.record_first_call(side, obj)
        elif side.state in sm.possible:
            engine.emit(
                self.name, "doubleBalancedCall", self.default_severity,
                f"double call to '{function_name}'",
            )
        engine.set_state(self.name, obj.name, obj.symbol, side.state)

    def audit_return(self) -> None:
        """Warn about every merged object whose paths disagree here."""
        engine = self.engine
        if engine.inline_fn:
            return
        for sm in engine.iter_states(self.name):
            if not sm.is_merged:
                continue
            resolved = resolve_possible(TrackedObject(sm.name, sm.symbol), sm.possible, self.tracker)
            if is_unbalanced(resolved):
                engine.emit(
                    self.name, "unbalancedReturn", self.default_severity,
                    f"returning with unbalanced {sm.name}",
                )

    def on_function_end(self) -> None:
        if self.engine.inline_fn or not self.engine.is_reachable():
            return
        self.audit_return()

    def after_function(self) -> None:
        self.tracker.clear()


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

_DEFAULT_REGISTRY = CheckerRegistry()
_DEFAULT_REGISTRY.register(BalancedCallChecker)


@dataclass
class CheckerRunResults:
    """
    Aggregate results from running a suite of checkers.

    Attributes
    ----------
    diagnostics            : All diagnostics from all checkers
    diagnostics_by_checker : Diagnostics grouped by checker name
    stats                  : Timing and counting statistics
    checker_names          : Names of checkers that were run
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.ERROR
        )

    @property
    def warning_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.WARNING
        )

    @property
    def finding_count(self) -> int:
        """Diagnostics that are findings rather than information notes."""
        return sum(
            1 for d in self.diagnostics
            if d.severity != DiagnosticSeverity.INFORMATION
        )

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Checker run complete: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs a suite of checkers against a cppcheck Configuration.

    Usage
    -----
    >>> runner = CheckerRunner(options={"balanced_funcs": "kernel.balanced_funcs"})
    >>> results = runner.run(cfg)
    >>> print(results.summary())

    Parameters for constructor
    ─────────────────────────
    registry    : CheckerRegistry — source of checker classes
    suppressions: SuppressionManager — pre-loaded suppression rules
    options     : dict — per-checker configuration
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or _DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or {}

    def run(
        self,
        cfg: Any,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run checkers against a single Configuration."""
        results = CheckerRunResults()

        self.suppressions.load_inline_suppressions(cfg)

        ctx = CheckerContext(
            cfg=cfg,
            suppressions=self.suppressions,
            options=self.options,
        )

        if checkers is not None:
            checker_classes: List[Type[Checker]] = []
            for name in checkers:
                cls = self.registry.get_by_name(name)
                if cls is not None:
                    checker_classes.append(cls)
                else:
                    _log.warning("unknown checker %r", name)
        else:
            checker_classes = self.registry.get_enabled()

        for cls in checker_classes:
            checker = cls()
            checker_name = cls.name
            results.checker_names.append(checker_name)

            t0 = time.monotonic()
            try:
                checker.configure(ctx)
                checker.collect_evidence(ctx)
                checker.diagnose(ctx)
                diags = checker.report(ctx)
            except Exception as exc:
                # the failure becomes an information diagnostic
                _log.error("checker %s failed: %s", checker_name, exc, exc_info=True)
                diags = [Diagnostic(
                    error_id="checkerInternalError",
                    message=f"Checker '{checker_name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(),
                    checker_name=checker_name,
                )]
            elapsed_ms = (time.monotonic() - t0) * 1000.0

            results.diagnostics.extend(diags)
            results.diagnostics_by_checker[checker_name] = diags
            results.stats[f"{checker_name}_elapsed_ms"] = elapsed_ms
        results.stats.update(
            (k, v) for k, v in ctx.stats.items() if k not in results.stats
        )
        return results

    def run_all_configurations(
        self,
        data: Any,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run checkers across all configurations in a CppcheckData dump."""
        combined = CheckerRunResults()
        for cfg in getattr(data, "configurations", []):
            partial = self.run(cfg, checkers=checkers)
            combined.diagnostics.extend(partial.diagnostics)
            for name, diags in partial.diagnostics_by_checker.items():
                combined.diagnostics_by_checker[name].extend(diags)
            for key, val in partial.stats.items():
                if key in combined.stats:
                    combined.stats[key] += val
                else:
                    combined.stats[key] = val
            for name in partial.checker_names:
                if name not in combined.checker_names:
                    combined.checker_names.append(name)
        return combined


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — CONVENIENCE ENTRY POINT FOR CPPCHECK ADDONS
# ═════════════════════════════════════════════════════════════════════════

def run_addon(
    dump_file: str,
    output: str = "json",
    suppress: Optional[Sequence[str]] = None,
    config: Optional[str] = None,
    data_dir: Optional[str] = None,
    project: str = DEFAULT_PROJECT,
    inline_calls: bool = False,
) -> int:
    """
    Run the balanced-call checker as a cppcheck addon.

    Parameters
    ----------
    dump_file    : Path to the .dump file from ``cppcheck --dump``
    output       : "json" for cppcheck protocol, "gcc" for GCC-style,
                   "summary" for a short report
    suppress     : Error IDs to globally suppress
    config       : Explicit protocol-family file
    data_dir     : Directory holding ``<project>.balanced_funcs``
    project      : Project name selecting the family file
    inline_calls : Follow calls into functions of the same unit

    Returns
    -------
    Exit code (0 = clean, 1 = findings, 2 = infrastructure failure)

    Usage from the command line or a cppcheck addon config::

        python -m cppcheck_balanced my_file.c.dump
    """
    try:
        from cppcheckdata import parsedump  # type: ignore[import-untyped]
    except ImportError:
        sys.stderr.write("ERROR: cppcheckdata module not found\n")
        return EXIT_INFRA

    if not Path(dump_file).is_file():
        _log.error("dump file not found: %s", dump_file)
        return EXIT_INFRA

    try:
        registry = load_protocol_registry(path=config, data_dir=data_dir, project=project)
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    data = parsedump(dump_file)

    sm = SuppressionManager()
    for eid in suppress or ():
        sm.add_global_suppression(eid)

    runner = CheckerRunner(
        suppressions=sm,
        options={
            "registry": registry,
            "inline_calls": inline_calls,
            "project": project,
        },
    )
    results = runner.run_all_configurations(data)

    if output == "json":
        for diag in results.diagnostics:
            sys.stdout.write(diag.to_json_str() + "\n")
    elif output == "gcc":
        for diag in results.diagnostics:
            sys.stdout.write(diag.to_gcc_format() + "\n")
    else:
        sys.stdout.write(results.summary() + "\n")

    return EXIT_ERROR if results.finding_count > 0 else EXIT_OK


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — MODULE MAIN (addon entry point)
# ═════════════════════════════════════════════════════════════════════════

def _configure_logging(verbosity: int) -> None:
    """Set up the ``cppcheck_balanced`` logger.

    0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    package_logger = logging.getLogger("cppcheck_balanced")
    package_logger.setLevel(level)
    if package_logger.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    package_logger.addHandler(handler)


def _list_families(registry: ProtocolRegistry) -> None:
    families = registry.families
    if not families:
        print("  (no protocol families loaded)")
        return
    for name in sorted(families):
        sides = families[name]
        print(f"  {name:25s} left:  {', '.join(sorted(sides[Side.LEFT])) or '-'}")
        print(f"  {'':25s} right: {', '.join(sorted(sides[Side.RIGHT])) or '-'}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that paired calls (lock/unlock, disable/enable) are balanced",
        prog="cppcheck-balanced",
    )
    parser.add_argument("dump_file", nargs="?", help="Path to .dump file")
    parser.add_argument(
        "--config", default=None, metavar="FILE",
        help="Protocol-family file (.balanced_funcs or .sexp)",
    )
    parser.add_argument(
        "--data-dir", default=None, metavar="DIR",
        help="Directory searched for <project>.balanced_funcs",
    )
    parser.add_argument(
        "--project", default=DEFAULT_PROJECT,
        help=f"Project whose family file is used (default: {DEFAULT_PROJECT})",
    )
    parser.add_argument(
        "--inline", action="store_true",
        help="Follow calls into functions defined in the same file",
    )
    parser.add_argument(
        "--output", choices=["json", "gcc", "summary"],
        default="json", help="Output format",
    )
    parser.add_argument(
        "--suppress", nargs="*", default=None,
        help="Error IDs to suppress",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "--list-families", action="store_true",
        help="List the loaded protocol families and exit",
    )
    return parser


def _main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for ``cppcheck-balanced`` / ``python -m cppcheck_balanced``."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.list_families:
        try:
            registry = load_protocol_registry(
                path=args.config, data_dir=args.data_dir, project=args.project,
            )
        except ConfigError as exc:
            _log.error("%s", exc)
            return EXIT_INFRA
        _list_families(registry)
        return EXIT_OK

    if not args.dump_file:
        parser.print_usage(sys.stderr)
        return EXIT_INFRA

    try:
        return run_addon(
            dump_file=args.dump_file,
            output=args.output,
            suppress=args.suppress,
            config=args.config,
            data_dir=args.data_dir,
            project=args.project,
            inline_calls=args.inline,
        )
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130


if __name__ == "__main__":
    sys.exit(_main())


__all__ = [
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_INFRA",
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "BalancedCallChecker",
    "CheckerRunner",
    "CheckerRunResults",
    "run_addon",
]
