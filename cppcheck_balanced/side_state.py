"""
cppcheck_balanced.side_state
============================

State space of the balanced-call checker and the per-function evidence
used to resolve the state an object starts a function in.

A tracked object holds one of four values at a program point:

``LEFT`` / ``RIGHT``
    Set explicitly by a call to a registered protocol function.
``START_STATE``
    The value at function entry, before any call touched the object.
    It is never resolved eagerly; the auditor resolves it on demand.
``UNDEFINED``
    Resolution failed: the evidence says the object starts on both
    sides, or on neither.

Resolution looks at how the *first* call on each path treated the
object.  A ``LEFT`` call with no prior state means the function assumes
the object arrives on the ``RIGHT`` side, and vice versa.  Those
assumptions are collected in an :class:`ObservationTracker`, which lives
exactly as long as the analysis of one function.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, FrozenSet, Hashable, Optional, Set


class Side(enum.Enum):
    """One half of a protocol."""
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "Side":
        return Side.RIGHT if self is Side.LEFT else Side.LEFT

    @property
    def state(self) -> "SideState":
        """The dataflow value a call on this side sets."""
        return SideState.LEFT if self is Side.LEFT else SideState.RIGHT


class SideState(enum.Enum):
    """Dataflow value attached to a tracked object."""
    LEFT = "left"
    RIGHT = "right"
    START_STATE = "start_state"
    UNDEFINED = "undefined"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TrackedObject:
    """Identity of a monitored object: its text plus the enclosing symbol."""
    name: str
    symbol: Optional[Hashable] = None

    def __str__(self) -> str:
        return self.name


class ObservationTracker:
    """The two assumed-start sets for the function under analysis.

    ``record_first_call`` is the only way entries get in; ``clear`` is
    called by the checker's after-function hook and nowhere else.
    """

    def __init__(self) -> None:
        self.assumed_start_left: Set[TrackedObject] = set()
        self.assumed_start_right: Set[TrackedObject] = set()

    def record_first_call(self, side: Side, obj: TrackedObject) -> None:
        """Note that *obj* was first seen being moved to *side*."""
        if side is Side.LEFT:
            self.assumed_start_right.add(obj)
        else:
            self.assumed_start_left.add(obj)

    def clear(self) -> None:
        self.assumed_start_left.clear()
        self.assumed_start_right.clear()

    def is_empty(self) -> bool:
        return not self.assumed_start_left and not self.assumed_start_right

    def __contains__(self, obj: object) -> bool:
        return obj in self.assumed_start_left or obj in self.assumed_start_right

    def __repr__(self) -> str:
        left = sorted(str(o) for o in self.assumed_start_left)
        right = sorted(str(o) for o in self.assumed_start_right)
        return f"ObservationTracker(start_left={left}, start_right={right})"


def resolve_start_state(obj: TrackedObject, tracker: ObservationTracker) -> SideState:
    """Resolve ``START_STATE`` for *obj* from the observed first calls.

    Only one of the two sets holding *obj* gives a concrete side; both or
    neither is ``UNDEFINED``.
    """
    is_left = obj in tracker.assumed_start_left
    is_right = obj in tracker.assumed_start_right
    if is_left and is_right:
        return SideState.UNDEFINED
    if is_left:
        return SideState.LEFT
    if is_right:
        return SideState.RIGHT
    return SideState.UNDEFINED


def resolve_possible(
    obj: TrackedObject,
    possible: FrozenSet[Any],
    tracker: ObservationTracker,
) -> FrozenSet[SideState]:
    """Map a merged possible set onto concrete sides.

    Every ``START_STATE`` member is resolved; values this checker does
    not own collapse to ``UNDEFINED``.
    """
    resolved: Set[SideState] = set()
    for value in possible:
        if value is SideState.START_STATE:
            resolved.add(resolve_start_state(obj, tracker))
        elif value in (SideState.LEFT, SideState.RIGHT):
            resolved.add(value)
        else:
            resolved.add(SideState.UNDEFINED)
    return frozenset(resolved)


def is_unbalanced(resolved: FrozenSet[SideState]) -> bool:
    """True when a resolved possible set is not one consistent side."""
    both = SideState.LEFT in resolved and SideState.RIGHT in resolved
    return both or SideState.UNDEFINED in resolved


def start_state_for(sm: Any) -> SideState:
    """Unmatched-state hook: anything never set is at its start state."""
    return SideState.START_STATE


__all__ = [
    "Side",
    "SideState",
    "TrackedObject",
    "ObservationTracker",
    "resolve_start_state",
    "resolve_possible",
    "is_unbalanced",
    "start_state_for",
]
