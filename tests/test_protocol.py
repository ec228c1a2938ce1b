# tests/test_protocol.py
"""
Tests for the protocol registry and object-key extractors.
"""

import logging

from cppcheck_balanced.ctrlflow_graph import CallArgument, CallSite
from cppcheck_balanced.protocol import ArgumentKey, FamilyKey, ProtocolRegistry
from cppcheck_balanced.side_state import Side, TrackedObject


def _call(name, *args):
    return CallSite(name, tuple(CallArgument(text, symbol) for text, symbol in args))


class TestExtractors:

    def test_family_key_ignores_arguments(self):
        key = FamilyKey("preempt")
        assert key(_call("preempt_disable")) == TrackedObject("preempt", None)
        assert key(_call("preempt_disable", ("x", 3))) == TrackedObject("preempt", None)

    def test_argument_key_uses_text_and_symbol(self):
        key = ArgumentKey(0)
        obj = key(_call("mutex_lock", ("&dev->lock", 7)))
        assert obj == TrackedObject("&dev->lock", 7)

    def test_argument_key_selects_index(self):
        obj = ArgumentKey(1)(_call("spin_lock_irqsave", ("&l", 1), ("flags", 2)))
        assert obj.name == "flags"

    def test_argument_key_missing_argument(self):
        assert ArgumentKey(2)(_call("mutex_lock", ("&l", 1))) is None

    def test_argument_key_str(self):
        assert str(ArgumentKey(0)) == "$arg0"


class TestProtocolRegistry:

    def test_register_and_lookup(self):
        registry = ProtocolRegistry()
        entry = registry.register("spin_lock", ArgumentKey(0), Side.LEFT)
        assert registry.lookup("spin_lock") is entry
        assert entry.side is Side.LEFT
        assert entry.object_key == "$arg0"

    def test_lookup_unknown(self):
        assert ProtocolRegistry().lookup("printf") is None

    def test_register_family(self):
        registry = ProtocolRegistry()
        registry.register_family("preempt", ["preempt_disable"], ["preempt_enable", "preempt_enable_no_resched"])
        assert len(registry) == 3
        assert registry.lookup("preempt_disable").side is Side.LEFT
        assert registry.lookup("preempt_enable_no_resched").side is Side.RIGHT
        assert registry.lookup("preempt_enable").object_key == "preempt"

    def test_family_entries_share_object(self):
        registry = ProtocolRegistry()
        registry.register_family("preempt", ["preempt_disable"], ["preempt_enable"])
        call = _call("whatever")
        left = registry.lookup("preempt_disable").extract(call)
        right = registry.lookup("preempt_enable").extract(call)
        assert left == right

    def test_last_registration_wins(self, caplog):
        registry = ProtocolRegistry()
        registry.register_family("a", ["f"], ["g"])
        with caplog.at_level(logging.DEBUG, logger="cppcheck_balanced.protocol"):
            registry.register_family("b", ["g"], ["f"])
        assert registry.lookup("f").side is Side.RIGHT
        assert registry.lookup("f").object_key == "b"
        assert len(registry) == 2
        assert "re-registered" in caplog.text

    def test_families_listing(self):
        registry = ProtocolRegistry()
        registry.register_family("preempt", ["preempt_disable"], ["preempt_enable"])
        families = registry.families
        assert families == {"preempt": {Side.LEFT: ["preempt_disable"], Side.RIGHT: ["preempt_enable"]}}

    def test_container_protocol(self):
        registry = ProtocolRegistry()
        assert not registry
        registry.register_family("rcu", ["rcu_read_lock"], ["rcu_read_unlock"])
        assert "rcu_read_lock" in registry
        assert "rcu" not in registry
        assert registry.function_names == ["rcu_read_lock", "rcu_read_unlock"]
        assert {e.function_name for e in registry} == {"rcu_read_lock", "rcu_read_unlock"}
