"""
cppcheck_balanced.path_engine
=============================

A small path-sensitive host engine for state-machine checkers.

Checkers do not walk code themselves.  They register *hooks* with an
engine and keep their per-object facts in the engine's *state tree*;
the engine walks each function, merges state trees where control flow
joins, and calls the hooks at the right moments.

State model
-----------
Every tracked fact is an :class:`SmState` keyed by ``(owner, name,
symbol)``.  ``owner`` is the checker that set it, ``name``/``symbol``
identify the object.  An SmState has:

``state``
    The current value, or :data:`MERGED` when different values reached
    this point on different paths.
``possible``
    The set of concrete values that can reach this point.

Merging two trees ``a ⊔ b``:

* a key present on one side only is completed on the other side with the
  owner's *unmatched state* (see :meth:`PathEngine.add_unmatched_state_hook`,
  default :data:`UNDEFINED`);
* equal non-merged values stay as they are, the possible sets are unioned;
* anything else becomes :data:`MERGED` with the union of the possible sets.

Traversal
---------
Functions are walked one at a time.  Blocks are visited once, in
reverse post-order with back edges removed, so every hook fires at most
once per call site.  Loops are therefore seen as "zero or one
iteration", which is what a balance check needs: one pass through the
body is where an unpaired call shows.

Hooks
-----
==============  =========================================================
function hook    a call to a named function (``add_function_hook``)
RETURN           after the calls of every reachable ``return`` block
END_FUNC         once at the end of the function; checkers ask
                 :meth:`is_reachable` whether control can fall off the end
AFTER_FUNC       after the function is done (never for inlined bodies)
==============  =========================================================

Inlining
--------
With ``inline_calls=True`` a call to another function of the same unit
is followed by a walk of the callee with :attr:`inline_fn` set.  The
callee gets a fresh state tree and the caller's tree is restored
afterwards; checkers are expected to ignore everything while
``inline_fn`` is set.
"""

from __future__ import annotations

import enum
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from cppcheck_balanced.ctrlflow_graph import CFG, CFGEdge, CFGNode, CallSite, EdgeKind, cfg_summary
from cppcheck_balanced.diagnostics import DiagnosticSeverity, SourceLocation
from cppcheck_balanced.errors import EngineError

_log = logging.getLogger(__name__)


# ===========================================================================
# ENGINE STATES
# ===========================================================================

class _EngineState(enum.Enum):
    MERGED = "merged"
    UNDEFINED = "undefined"

    def __str__(self) -> str:
        return self.value


MERGED = _EngineState.MERGED
UNDEFINED = _EngineState.UNDEFINED

StateKey = Tuple[str, str, Optional[Hashable]]


@dataclass(frozen=True)
class SmState:
    """One tracked fact at a program point."""
    owner: str
    name: str
    symbol: Optional[Hashable]
    state: Any
    possible: FrozenSet[Any] = frozenset()

    @property
    def key(self) -> StateKey:
        return (self.owner, self.name, self.symbol)

    @property
    def is_merged(self) -> bool:
        return self.state is MERGED

    def __str__(self) -> str:
        if self.is_merged:
            values = ", ".join(sorted(str(v) for v in self.possible))
            return f"{self.name}: merged({values})"
        return f"{self.name}: {self.state}"


def merge_sm_states(a: SmState, b: SmState) -> SmState:
    """Join two facts about the same object."""
    possible = a.possible | b.possible
    if a.state == b.state and a.state is not MERGED:
        return SmState(a.owner, a.name, a.symbol, a.state, possible)
    return SmState(a.owner, a.name, a.symbol, MERGED, possible)


class StateTree:
    """All facts of all checkers at one program point."""

    def __init__(self, states: Optional[Dict[StateKey, SmState]] = None) -> None:
        self._states: Dict[StateKey, SmState] = dict(states or {})

    def get(self, key: StateKey) -> Optional[SmState]:
        return self._states.get(key)

    def set(self, sm: SmState) -> None:
        self._states[sm.key] = sm

    def keys(self) -> List[StateKey]:
        return list(self._states)

    def for_owner(self, owner: str) -> Iterator[SmState]:
        for sm in list(self._states.values()):
            if sm.owner == owner:
                yield sm

    def copy(self) -> "StateTree":
        return StateTree(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return "StateTree(" + "; ".join(str(sm) for sm in self._states.values()) + ")"


# ===========================================================================
# HOOKS AND MESSAGES
# ===========================================================================

class HookKind(enum.Enum):
    RETURN = "return"
    END_FUNC = "end_func"
    AFTER_FUNC = "after_func"


FunctionHook = Callable[[str, CallSite, Any], None]
UnmatchedStateHook = Callable[[SmState], Any]


@dataclass(frozen=True)
class EngineMessage:
    """A finding reported through :meth:`PathEngine.emit`."""
    owner: str
    error_id: str
    severity: DiagnosticSeverity
    message: str
    location: SourceLocation
    function: str = ""


class HostEngine(Protocol):
    """What a checker may rely on from the engine that drives it."""

    inline_fn: Optional[str]
    location: SourceLocation
    function_name: str

    def add_function_hook(self, name: str, callback: FunctionHook, data: Any = None) -> None: ...

    def add_hook(self, callback: Callable[[], None], kind: HookKind) -> None: ...

    def add_unmatched_state_hook(self, owner: str, callback: UnmatchedStateHook) -> None: ...

    def get_sm_state(self, owner: str, name: str, symbol: Optional[Hashable] = None) -> Optional[SmState]: ...

    def set_state(self, owner: str, name: str, symbol: Optional[Hashable], state: Any) -> None: ...

    def iter_states(self, owner: str) -> Iterator[SmState]: ...

    def is_reachable(self) -> bool: ...

    def emit(self, owner: str, error_id: str, severity: DiagnosticSeverity, message: str) -> None: ...


# ===========================================================================
# PATH ENGINE
# ===========================================================================

class PathEngine:
    """Reference :class:`HostEngine` walking :class:`CFG` objects.

    Parameters
    ----------
    inline_calls : bool
        Walk the body of callees defined in the same unit.
    max_inline_depth : int
        How many inlined frames may be stacked.
    """

    def __init__(self, inline_calls: bool = False, max_inline_depth: int = 1) -> None:
        self.inline_calls = inline_calls
        self.max_inline_depth = max_inline_depth

        self._function_hooks: Dict[str, List[Tuple[FunctionHook, Any]]] = defaultdict(list)
        self._hooks: Dict[HookKind, List[Callable[[], None]]] = defaultdict(list)
        self._unmatched: Dict[str, UnmatchedStateHook] = {}

        self._unit: Dict[str, CFG] = {}
        self._inline_stack: List[str] = []
        self._tree: Optional[StateTree] = None
        self._reachable: bool = False

        self.location = SourceLocation()
        self.function_name = ""
        self.messages: List[EngineMessage] = []
        self.stats: Dict[str, Any] = defaultdict(int)

    # ----- registration ------------------------------------------------------

    def add_function_hook(self, name: str, callback: FunctionHook, data: Any = None) -> None:
        self._function_hooks[name].append((callback, data))

    def add_hook(self, callback: Callable[[], None], kind: HookKind) -> None:
        self._hooks[kind].append(callback)

    def add_unmatched_state_hook(self, owner: str, callback: UnmatchedStateHook) -> None:
        self._unmatched[owner] = callback

    # ----- state access ------------------------------------------------------

    @property
    def inline_fn(self) -> Optional[str]:
        return self._inline_stack[-1] if self._inline_stack else None

    def _current_tree(self) -> StateTree:
        if self._tree is None:
            raise EngineError("no function is being analysed")
        return self._tree

    def get_sm_state(self, owner: str, name: str, symbol: Optional[Hashable] = None) -> Optional[SmState]:
        if self._tree is None:
            return None
        return self._tree.get((owner, name, symbol))

    def set_state(self, owner: str, name: str, symbol: Optional[Hashable], state: Any) -> None:
        self._current_tree().set(SmState(owner, name, symbol, state, frozenset({state})))

    def iter_states(self, owner: str) -> Iterator[SmState]:
        if self._tree is None:
            return iter(())
        return self._tree.for_owner(owner)

    def is_reachable(self) -> bool:
        return self._reachable

    def emit(self, owner: str, error_id: str, severity: DiagnosticSeverity, message: str) -> None:
        msg = EngineMessage(
            owner=owner,
            error_id=error_id,
            severity=severity,
            message=message,
            location=self.location,
            function=self.function_name,
        )
        _log.debug("%s: %s: %s", msg.location, owner, message)
        self.messages.append(msg)

    # ----- merging -----------------------------------------------------------

    def _unmatched_state(self, sm: SmState) -> SmState:
        hook = self._unmatched.get(sm.owner)
        value = hook(sm) if hook is not None else UNDEFINED
        return SmState(sm.owner, sm.name, sm.symbol, value, frozenset({value}))

    def merge_trees(self, a: StateTree, b: StateTree) -> StateTree:
        result = StateTree()
        keys = a.keys()
        seen = set(keys)
        keys.extend(k for k in b.keys() if k not in seen)
        for key in keys:
            sa = a.get(key)
            sb = b.get(key)
            if sa is None:
                sa = self._unmatched_state(sb)
            if sb is None:
                sb = self._unmatched_state(sa)
            result.set(merge_sm_states(sa, sb))
        return result

    def _merge_incoming(
        self, edges: Iterable[CFGEdge], out_trees: Dict[CFGNode, StateTree]
    ) -> Optional[StateTree]:
        merged: Optional[StateTree] = None
        for edge in edges:
            tree = out_trees.get(edge.src)
            if tree is None:
                continue
            merged = tree.copy() if merged is None else self.merge_trees(merged, tree)
        return merged

    # ----- traversal ---------------------------------------------------------

    def _fire(self, kind: HookKind) -> None:
        for callback in self._hooks.get(kind, ()):
            callback()

    def _handle_call(self, call: CallSite) -> None:
        self.location = call.location
        self.stats["calls"] += 1
        for callback, data in self._function_hooks.get(call.name, ()):
            callback(call.name, call, data)

        callee = self._unit.get(call.name)
        if (
            self.inline_calls
            and callee is not None
            and len(self._inline_stack) < self.max_inline_depth
            and call.name not in self._inline_stack
            and call.name != self.function_name
        ):
            self._inline(callee)

    def _inline(self, callee: CFG) -> None:
        saved = (self._tree, self._reachable, self.location, self.function_name)
        self._inline_stack.append(callee.name)
        self.stats["inlined"] += 1
        try:
            self._walk(callee)
        finally:
            self._inline_stack.pop()
            self._tree, self._reachable, self.location, self.function_name = saved

    def _walk(self, cfg: CFG) -> None:
        self.function_name = cfg.name if not self._inline_stack else self.function_name
        back = cfg.back_edges()
        order = cfg.reverse_postorder(skip=back)
        out_trees: Dict[CFGNode, StateTree] = {}

        for node in order:
            if node is cfg.exit:
                continue
            if node is cfg.entry:
                tree: Optional[StateTree] = StateTree()
            else:
                tree = self._merge_incoming(
                    (e for e in node.predecessors if e not in back), out_trees
                )
            if tree is None:
                continue

            self._tree = tree
            self._reachable = True
            self.stats["blocks"] += 1
            for call in node.calls:
                self._handle_call(call)

            if node.is_return:
                self.location = node.location
                self._fire(HookKind.RETURN)
            out_trees[node] = self._tree

        exit_edges = [
            e for e in cfg.exit.predecessors
            if e.kind is not EdgeKind.RETURN and e not in back
        ]
        end_tree = self._merge_incoming(exit_edges, out_trees)
        self._reachable = end_tree is not None
        self._tree = end_tree if end_tree is not None else StateTree()
        self.location = cfg.exit.location
        self._fire(HookKind.END_FUNC)

    def analyze_function(self, cfg: CFG) -> None:
        """Walk one function and fire its AFTER_FUNC hooks."""
        if self._inline_stack:
            raise EngineError("analyze_function called while inlining")
        if _log.isEnabledFor(logging.DEBUG):
            _log.debug("analysing %s\n%s", cfg.name, cfg_summary(cfg))
        self.stats["functions"] += 1
        try:
            self._walk(cfg)
        finally:
            self._fire(HookKind.AFTER_FUNC)
            self._tree = None
            self._reachable = False

    def analyze_unit(self, cfgs: Sequence[CFG]) -> List[EngineMessage]:
        """Walk every function of a translation unit in order.

        Returns the messages emitted during this call.
        """
        t0 = time.monotonic()
        first = len(self.messages)
        self._unit = {}
        for cfg in cfgs:
            self._unit.setdefault(cfg.name, cfg)
        for cfg in cfgs:
            self.analyze_function(cfg)
        self.stats["elapsed_ms"] += (time.monotonic() - t0) * 1000.0
        _log.info(
            "analysed %d function(s), %d message(s)",
            len(cfgs), len(self.messages) - first,
        )
        return self.messages[first:]


__all__ = [
    "MERGED",
    "UNDEFINED",
    "SmState",
    "StateTree",
    "merge_sm_states",
    "HookKind",
    "EngineMessage",
    "HostEngine",
    "PathEngine",
]
