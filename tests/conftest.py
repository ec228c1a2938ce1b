# tests/conftest.py
"""
Shared fixtures: a tiny C tokenizer producing objects shaped like
``cppcheckdata`` tokens, scopes and configurations, plus sample
protocol-family files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from cppcheck_balanced.checkers import BalancedCallChecker
from cppcheck_balanced.ctrlflow_graph import build_all_cfgs
from cppcheck_balanced.path_engine import PathEngine
from cppcheck_balanced.protocol import ArgumentKey, ProtocolRegistry


# ─────────────────────────────────────────────────────────────────────────
#  Sample configuration text
# ─────────────────────────────────────────────────────────────────────────

KERNEL_FAMILIES = """\
/* preemption */
preempt   preempt_disable ;  preempt_enable preempt_enable_no_resched ;
// interrupts
local_irq local_irq_disable ; local_irq_enable ;
"""

TRUNCATED_FAMILIES = """\
preempt preempt_disable ; preempt_enable ;
local_irq local_irq_disable ; local_irq_enable
"""

SEXP_FAMILIES = """\
; families as S-expressions
(family preempt (left preempt_disable) (right preempt_enable))
(family mutex (left mutex_lock) (right mutex_unlock) (track-arg 0))
"""


# ─────────────────────────────────────────────────────────────────────────
#  Mock cppcheckdata objects
# ─────────────────────────────────────────────────────────────────────────

class MockToken:
    """Just enough of ``cppcheckdata.Token`` for the CFG builder."""

    def __init__(self, s: str, file: str = "test.c", linenr: int = 1, column: int = 1) -> None:
        self.str = s
        self.file = file
        self.linenr = linenr
        self.column = column
        self.next: Optional[MockToken] = None
        self.previous: Optional[MockToken] = None
        self.link: Optional[MockToken] = None
        self.varId = 0
        self.isName = bool(re.match(r"[A-Za-z_]\w*$", s))
        self.isKeyword = False

    def __repr__(self) -> str:
        return f"MockToken({self.str!r} @{self.linenr}:{self.column})"


@dataclass
class MockFunction:
    name: str


@dataclass
class MockScope:
    type: str
    className: str
    bodyStart: Any = None
    bodyEnd: Any = None
    function: Optional[MockFunction] = None


@dataclass
class MockSuppression:
    errorId: str
    fileName: str = ""
    lineNumber: int = 0


@dataclass
class MockConfiguration:
    tokenlist: List[MockToken] = field(default_factory=list)
    scopes: List[MockScope] = field(default_factory=list)
    suppressions: List[MockSuppression] = field(default_factory=list)


@dataclass
class MockDump:
    configurations: List[MockConfiguration] = field(default_factory=list)


def make_token_chain(strs: List[str], file: str = "test.c") -> List[MockToken]:
    """Link plain strings into a token list, one token per column."""
    tokens = [MockToken(s, file=file, linenr=1, column=i + 1) for i, s in enumerate(strs)]
    for a, b in zip(tokens, tokens[1:]):
        a.next = b
        b.previous = a
    _link_brackets(tokens)
    return tokens


_C_TOKEN_RE = re.compile(
    r"""
      (?P<comment>//[^\n]*|/\*.*?\*/)
    | (?P<ws>\s+)
    | (?P<name>[A-Za-z_]\w*)
    | (?P<number>\d[\w.]*)
    | (?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
    | (?P<op>->|\+\+|--|==|!=|<=|>=|&&|\|\||::|<<|>>|[-+*/%&|^!~<>=?:;,.(){}\[\]#])
    """,
    re.VERBOSE | re.DOTALL,
)

_C_KEYWORDS = frozenset({
    "if", "else", "while", "for", "do", "switch", "case", "default",
    "break", "continue", "return", "goto", "sizeof", "struct", "union",
    "enum", "static", "const", "void", "int", "char", "long", "short",
    "unsigned", "signed", "float", "double", "inline", "extern",
})


def _link_brackets(tokens: List[MockToken]) -> None:
    pairs = {")": "(", "]": "[", "}": "{"}
    stack: List[MockToken] = []
    for tok in tokens:
        if tok.str in ("(", "[", "{"):
            stack.append(tok)
        elif tok.str in pairs:
            opener = stack.pop()
            assert opener.str == pairs[tok.str], f"unbalanced {tok!r}"
            opener.link = tok
            tok.link = opener


def tokenize_c(src: str, file: str = "test.c") -> List[MockToken]:
    """Tokenize C source into linked :class:`MockToken` objects.

    Every identifier that is not a keyword and not called gets a
    ``varId``, one per distinct name.
    """
    tokens: List[MockToken] = []
    line, line_start = 1, 0
    for m in _C_TOKEN_RE.finditer(src):
        kind = m.lastgroup
        text = m.group()
        if kind not in ("comment", "ws"):
            tokens.append(MockToken(text, file=file, linenr=line, column=m.start() - line_start + 1))
        if "\n" in text:
            line += text.count("\n")
            line_start = m.start() + text.rfind("\n") + 1
    for a, b in zip(tokens, tokens[1:]):
        a.next = b
        b.previous = a
    _link_brackets(tokens)

    var_ids: Dict[str, int] = {}
    for tok in tokens:
        if not tok.isName:
            continue
        if tok.str in _C_KEYWORDS:
            tok.isKeyword = True
            continue
        if tok.next is not None and tok.next.str == "(":
            continue
        tok.varId = var_ids.setdefault(tok.str, len(var_ids) + 1)
    return tokens


def function_scopes(tokens: List[MockToken]) -> List[MockScope]:
    """One ``Function`` scope per top-level ``name(...) { ... }``."""
    scopes: List[MockScope] = []
    tok = tokens[0] if tokens else None
    while tok is not None:
        if tok.str == "{" and tok.link is not None:
            prev = tok.previous
            if prev is not None and prev.str == ")" and prev.link is not None:
                name_tok = prev.link.previous
                name = name_tok.str if name_tok is not None else "<anonymous>"
                scopes.append(MockScope(
                    type="Function",
                    className=name,
                    bodyStart=tok,
                    bodyEnd=tok.link,
                    function=MockFunction(name),
                ))
            tok = tok.link.next
            continue
        tok = tok.next
    return scopes


def make_cfg(src: str, file: str = "test.c") -> MockConfiguration:
    """A :class:`MockConfiguration` for a C translation unit."""
    tokens = tokenize_c(src, file=file)
    return MockConfiguration(tokenlist=tokens, scopes=function_scopes(tokens))


def make_registry() -> ProtocolRegistry:
    """``preempt`` and ``local_irq`` families plus per-argument mutexes."""
    registry = ProtocolRegistry()
    registry.register_family("preempt", ["preempt_disable"], ["preempt_enable"])
    registry.register_family("local_irq", ["local_irq_disable"], ["local_irq_enable"])
    registry.register_family("mutex", ["mutex_lock"], ["mutex_unlock"], ArgumentKey(0))
    return registry


def check_c(src: str, registry: Optional[ProtocolRegistry] = None, **engine_opts):
    """Run the balanced-call checker over *src*.

    Returns ``(messages, checker, engine)``.
    """
    checker = BalancedCallChecker(registry if registry is not None else make_registry())
    engine = PathEngine(**engine_opts)
    checker.attach(engine)
    messages = engine.analyze_unit(build_all_cfgs(make_cfg(src)))
    return messages, checker, engine


# ─────────────────────────────────────────────────────────────────────────
#  Fixtures
# ─────────────────────────────────────────────────────────────────────────

@pytest.fixture
def registry() -> ProtocolRegistry:
    return make_registry()


@pytest.fixture
def kernel_file(tmp_path):
    path = tmp_path / "kernel.balanced_funcs"
    path.write_text(KERNEL_FAMILIES, encoding="utf-8")
    return path


@pytest.fixture
def sexp_file(tmp_path):
    path = tmp_path / "families.sexp"
    path.write_text(SEXP_FAMILIES, encoding="utf-8")
    return path
