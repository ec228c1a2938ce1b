"""
cppcheck_balanced.protocol
==========================

Registry of the paired functions the checker watches.

A *protocol family* is a name plus two groups of functions: the ones
that move an object to the ``LEFT`` side (``spin_lock``,
``preempt_disable``, ...) and the ones that move it back to ``RIGHT``
(``spin_unlock``, ``preempt_enable``, ...).  Each registered function
also says *which object* a call to it acts on, through an extractor:

``FamilyKey(name)``
    Every call acts on one object named after the family.  This is the
    classic setting for global protocols such as preemption or IRQ
    state.
``ArgumentKey(index)``
    The call acts on its ``index``-th argument, so ``lock(&a)`` and
    ``lock(&b)`` are tracked separately.

The registry is a flat mapping keyed by function name; registering a
name twice keeps the last registration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from cppcheck_balanced.ctrlflow_graph import CallSite
from cppcheck_balanced.side_state import Side, TrackedObject

_log = logging.getLogger(__name__)

ObjectKeyExtractor = Callable[[CallSite], Optional[TrackedObject]]


@dataclass(frozen=True)
class FamilyKey:
    """Extractor tracking a single object named after the family."""
    name: str

    def __call__(self, call: CallSite) -> Optional[TrackedObject]:
        return TrackedObject(self.name, None)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArgumentKey:
    """Extractor tracking one argument of the call."""
    index: int

    def __call__(self, call: CallSite) -> Optional[TrackedObject]:
        arg = call.arg(self.index)
        if arg is None or not arg.text:
            return None
        return TrackedObject(arg.text, arg.symbol)

    def __str__(self) -> str:
        return f"$arg{self.index}"


@dataclass(frozen=True)
class ProtocolEntry:
    """One registered function."""
    function_name: str
    object_key: str
    side: Side
    extractor: ObjectKeyExtractor

    def extract(self, call: CallSite) -> Optional[TrackedObject]:
        return self.extractor(call)


class ProtocolRegistry:
    """Function name → :class:`ProtocolEntry`.

    Usage
    -----
    >>> registry = ProtocolRegistry()
    >>> registry.register_family("preempt", ["preempt_disable"], ["preempt_enable"])
    >>> registry.lookup("preempt_enable").side
    <Side.RIGHT: 'right'>
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ProtocolEntry] = {}

    def register(
        self,
        function_name: str,
        extractor: ObjectKeyExtractor,
        side: Side,
        object_key: Optional[str] = None,
    ) -> ProtocolEntry:
        """Register *function_name*; a later registration replaces an earlier one."""
        entry = ProtocolEntry(
            function_name=function_name,
            object_key=object_key if object_key is not None else str(extractor),
            side=side,
            extractor=extractor,
        )
        previous = self._entries.get(function_name)
        if previous is not None and previous != entry:
            _log.debug(
                "%s re-registered: %s/%s replaces %s/%s",
                function_name, entry.object_key, entry.side.value,
                previous.object_key, previous.side.value,
            )
        self._entries[function_name] = entry
        return entry

    def register_family(
        self,
        name: str,
        left: List[str],
        right: List[str],
        extractor: Optional[ObjectKeyExtractor] = None,
    ) -> None:
        """Register a whole family; the default extractor is ``FamilyKey(name)``."""
        extractor = extractor or FamilyKey(name)
        for func in left:
            self.register(func, extractor, Side.LEFT, object_key=name)
        for func in right:
            self.register(func, extractor, Side.RIGHT, object_key=name)

    def lookup(self, function_name: str) -> Optional[ProtocolEntry]:
        return self._entries.get(function_name)

    @property
    def function_names(self) -> List[str]:
        return sorted(self._entries)

    @property
    def families(self) -> Dict[str, Dict[Side, List[str]]]:
        """Family name → side → function names, for listings."""
        result: Dict[str, Dict[Side, List[str]]] = {}
        for entry in self._entries.values():
            sides = result.setdefault(entry.object_key, {Side.LEFT: [], Side.RIGHT: []})
            sides[entry.side].append(entry.function_name)
        return result

    def __iter__(self) -> Iterator[ProtocolEntry]:
        return iter(self._entries.values())

    def __contains__(self, function_name: object) -> bool:
        return function_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ProtocolRegistry({len(self._entries)} functions)"


__all__ = [
    "ObjectKeyExtractor",
    "FamilyKey",
    "ArgumentKey",
    "ProtocolEntry",
    "ProtocolRegistry",
]
