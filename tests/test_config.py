# tests/test_config.py
"""
Tests for loading protocol families from text and S-expression files.
"""

import logging

import pytest

from cppcheck_balanced.config import (
    FamilySpec,
    find_config_file,
    load_families,
    load_protocol_registry,
    parse_balanced_funcs,
    parse_sexp_families,
    tokenize,
)
from cppcheck_balanced.errors import ConfigError
from cppcheck_balanced.protocol import ArgumentKey, FamilyKey, ProtocolRegistry
from cppcheck_balanced.side_state import Side
from tests.conftest import KERNEL_FAMILIES, SEXP_FAMILIES, TRUNCATED_FAMILIES


class TestTokenize:

    def test_comments_skipped(self):
        toks = list(tokenize("a /* b */ c // d\n e"))
        assert [t.text for t in toks] == ["a", "c", "e"]

    def test_kinds(self):
        toks = list(tokenize('name 42 "str" ;'))
        assert [t.kind for t in toks] == ["ident", "number", "string", "special"]

    def test_positions(self):
        toks = list(tokenize("a\n  b", file="f.balanced_funcs"))
        assert (toks[1].span.line, toks[1].span.column) == (2, 3)
        assert toks[1].span.file == "f.balanced_funcs"

    def test_multiline_comment_counts_lines(self):
        toks = list(tokenize("/* one\ntwo */\nx"))
        assert toks[0].span.line == 3


class TestParseBalancedFuncs:

    def test_two_families(self):
        families = parse_balanced_funcs(KERNEL_FAMILIES)
        assert [f.name for f in families] == ["preempt", "local_irq"]
        assert families[0].left == ("preempt_disable",)
        assert families[0].right == ("preempt_enable", "preempt_enable_no_resched")
        assert families[0].track_arg is None

    def test_any_special_token_delimits(self):
        families = parse_balanced_funcs("rcu rcu_read_lock , rcu_read_unlock .")
        assert families == [FamilySpec("rcu", ("rcu_read_lock",), ("rcu_read_unlock",), span=families[0].span)]

    def test_empty_group(self):
        families = parse_balanced_funcs("odd ; put ;")
        assert families[0].left == ()
        assert families[0].right == ("put",)

    def test_truncated_family_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cppcheck_balanced.config"):
            families = parse_balanced_funcs(TRUNCATED_FAMILIES)
        assert [f.name for f in families] == ["preempt"]
        assert "local_irq" in caplog.text

    def test_malformed_family_stops_loading(self):
        text = "a f ; g ;\nb h 12 ; i ;\nc j ; k ;"
        families = parse_balanced_funcs(text)
        assert [f.name for f in families] == ["a"]

    def test_family_name_must_be_identifier(self):
        assert parse_balanced_funcs("; a f ; g ;") == []

    def test_empty_input(self):
        assert parse_balanced_funcs("  /* nothing */ ") == []

    def test_span_points_at_family_name(self):
        families = parse_balanced_funcs("\n\n  preempt a ; b ;", file="k.balanced_funcs")
        assert str(families[0].span) == "k.balanced_funcs:3:3"


class TestParseSexpFamilies:

    def test_families(self):
        families = parse_sexp_families(SEXP_FAMILIES)
        assert [f.name for f in families] == ["preempt", "mutex"]
        assert families[0].left == ("preempt_disable",)
        assert families[1].track_arg == 0

    def test_truncated_form(self):
        text = "(family a (left f) (right g))\n(family b (left h)"
        assert [f.name for f in parse_sexp_families(text)] == ["a"]

    def test_missing_group_stops_loading(self):
        text = (
            "(family a (left f) (right g))\n"
            "(family b (left h))\n"
            "(family c (left i) (right j))\n"
        )
        assert [f.name for f in parse_sexp_families(text)] == ["a"]

    def test_unknown_clause(self):
        assert parse_sexp_families("(family a (left f) (right g) (colour red))") == []

    def test_bad_track_arg(self):
        assert parse_sexp_families("(family a (left f) (right g) (track-arg x))") == []

    def test_text_outside_forms(self):
        assert parse_sexp_families("family a") == []

    def test_string_function_names(self):
        families = parse_sexp_families('(family a (left "f") (right "g"))')
        assert families[0].left == ("f",)


class TestFindConfigFile:

    def test_found_in_data_dir(self, kernel_file):
        assert find_config_file(kernel_file.parent) == kernel_file

    def test_project_selects_file(self, tmp_path):
        (tmp_path / "xen.balanced_funcs").write_text("a f ; g ;")
        assert find_config_file(tmp_path, project="xen").name == "xen.balanced_funcs"

    def test_missing(self, tmp_path):
        assert find_config_file(tmp_path, project="no_such_project") is None

    def test_builtin_kernel_data(self):
        path = find_config_file()
        assert path is not None
        assert path.name == "kernel.balanced_funcs"


class TestLoadProtocolRegistry:

    def test_from_text_file(self, kernel_file):
        registry = load_protocol_registry(path=kernel_file)
        assert len(registry) == 5
        entry = registry.lookup("preempt_enable_no_resched")
        assert entry.side is Side.RIGHT
        assert entry.extractor == FamilyKey("preempt")

    def test_from_sexp_file(self, sexp_file):
        registry = load_protocol_registry(path=sexp_file)
        assert registry.lookup("mutex_unlock").extractor == ArgumentKey(0)
        assert registry.lookup("preempt_disable").side is Side.LEFT

    def test_from_data_dir(self, kernel_file):
        registry = load_protocol_registry(data_dir=kernel_file.parent)
        assert "local_irq_enable" in registry

    def test_builtin_kernel_families(self):
        registry = load_protocol_registry()
        assert registry.lookup("rcu_read_lock").side is Side.LEFT
        assert registry.lookup("preempt_enable").object_key == "preempt"

    def test_missing_project_file_is_empty(self, tmp_path, caplog):
        with caplog.at_level(logging.INFO, logger="cppcheck_balanced.config"):
            registry = load_protocol_registry(data_dir=tmp_path, project="no_such_project")
        assert len(registry) == 0
        assert "no_such_project.balanced_funcs" in caplog.text

    def test_unreadable_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError):
            load_protocol_registry(path=tmp_path / "missing.balanced_funcs")

    def test_invalid_utf8_keeps_earlier_families(self, tmp_path, caplog):
        path = tmp_path / "bad.balanced_funcs"
        path.write_bytes(b"preempt preempt_disable ; preempt_enable ;\n\xff\nlocal_irq local_irq_disable ; local_irq_enable ;\n")
        with caplog.at_level(logging.WARNING, logger="cppcheck_balanced.config"):
            registry = load_protocol_registry(path=path)
        assert registry.function_names == ["preempt_disable", "preempt_enable"]
        assert "invalid UTF-8 at byte 43" in caplog.text

    def test_invalid_utf8_inside_family_drops_it(self, tmp_path):
        path = tmp_path / "bad.balanced_funcs"
        path.write_bytes(b"preempt preempt_disable ; preempt_en\xffable ;\n")
        assert len(load_protocol_registry(path=path)) == 0

    def test_invalid_utf8_in_sexp_file(self, tmp_path):
        path = tmp_path / "bad.sexp"
        path.write_bytes(b"(family preempt (left preempt_disable) (right preempt_enable))\n(family \xff)\n")
        assert [f.name for f in load_families(path)] == ["preempt"]

    def test_extends_existing_registry(self, kernel_file):
        registry = ProtocolRegistry()
        registry.register_family("rcu", ["rcu_read_lock"], ["rcu_read_unlock"])
        same = load_protocol_registry(path=kernel_file, registry=registry)
        assert same is registry
        assert len(registry) == 7

    def test_load_families_picks_format_by_suffix(self, sexp_file, kernel_file):
        assert [f.name for f in load_families(sexp_file)] == ["preempt", "mutex"]
        assert [f.name for f in load_families(kernel_file)] == ["preempt", "local_irq"]
