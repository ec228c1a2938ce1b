"""cppcheck_balanced — paired-call balance checking for Cppcheck dumps.

Checks that calls to paired functions (``spin_lock``/``spin_unlock``,
``preempt_disable``/``preempt_enable``, ...) are balanced on every path
through a function body.

Submodules
----------
protocol
    ``ProtocolRegistry``: which functions move which object to which side.
config
    Loading protocol families from ``<project>.balanced_funcs`` text files
    or S-expression files.
side_state
    The ``left`` / ``right`` / ``start_state`` / ``undefined`` state space
    and start-state resolution.
ctrlflow_graph
    Per-function CFGs with call sites, built from Cppcheck dump tokens.
path_engine
    The path-sensitive host engine that drives checker hooks.
checkers
    ``BalancedCallChecker``, the runner, the addon entry point and CLI.

Usage
-----
Command-line::

    cppcheck --dump foo.c
    python -m cppcheck_balanced foo.c.dump --config kernel.balanced_funcs

Programmatic::

    from cppcheck_balanced import BalancedCallChecker, PathEngine, ProtocolRegistry

    registry = ProtocolRegistry()
    registry.register_family("preempt", ["preempt_disable"], ["preempt_enable"])
    engine = PathEngine()
    BalancedCallChecker(registry).attach(engine)
    messages = engine.analyze_unit(cfgs)
"""

from __future__ import annotations

__version__: str = "0.2.0"

from cppcheck_balanced.checkers import (
    BalancedCallChecker,
    CheckerContext,
    CheckerRunner,
    CheckerRunResults,
    run_addon,
)
from cppcheck_balanced.config import find_config_file, load_protocol_registry
from cppcheck_balanced.diagnostics import Diagnostic, DiagnosticSeverity, SuppressionManager
from cppcheck_balanced.errors import BalancedError, ConfigError, ConfigSyntaxError
from cppcheck_balanced.path_engine import PathEngine
from cppcheck_balanced.protocol import ArgumentKey, FamilyKey, ProtocolRegistry
from cppcheck_balanced.side_state import Side, SideState, TrackedObject

__all__: list[str] = [
    "__version__",
    "BalancedCallChecker",
    "CheckerContext",
    "CheckerRunner",
    "CheckerRunResults",
    "run_addon",
    "find_config_file",
    "load_protocol_registry",
    "Diagnostic",
    "DiagnosticSeverity",
    "SuppressionManager",
    "BalancedError",
    "ConfigError",
    "ConfigSyntaxError",
    "PathEngine",
    "ArgumentKey",
    "FamilyKey",
    "ProtocolRegistry",
    "Side",
    "SideState",
    "TrackedObject",
]
