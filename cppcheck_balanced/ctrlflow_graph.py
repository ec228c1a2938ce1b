"""
cppcheck_balanced.ctrlflow_graph
================================

Builds intraprocedural Control Flow Graphs (CFGs) from Cppcheck dump data.

Each function scope in a Configuration yields one CFG.  Nodes are basic
blocks holding the ordered *call sites* executed in the block; edges
carry control-flow semantics (fall-through, branch-true, branch-false,
back-edge, switch-case, return, goto, ...).

Public API
----------
    CallArgument     - one argument expression of a call
    CallSite         - a call to a named function
    CFGNode          - a single basic block
    CFGEdge          - a directed edge between two CFGNodes
    CFG              - the control flow graph for one function
    build_cfg        - build a CFG from a cppcheckdata.Scope
    build_all_cfgs   - build CFGs for every function in a Configuration

Typical usage::

    import cppcheckdata
    from cppcheck_balanced.ctrlflow_graph import build_all_cfgs

    data = cppcheckdata.parsedump("foo.c.dump")
    for cfg_config in data.configurations:
        for cfg in build_all_cfgs(cfg_config):
            print(cfg_summary(cfg))

Implementation notes
--------------------
* We walk the *token stream* inside a function scope (from
  ``scope.bodyStart`` to ``scope.bodyEnd``) one statement at a time.
  ``{``/``(``/``[`` are skipped through their ``link`` token.
* Calls nested in arguments are recorded before the call that encloses
  them, which is the order they are evaluated in.
* ``goto`` support is best-effort: labels inside the same function are
  resolved, unknown labels are routed to the exit node.
* Loops get a *latch* block (the ``for`` increment, the target of
  ``continue``).  The latch has a back edge to the loop condition and a
  forward edge out of the loop, so a single forward pass sees both the
  zero-iteration and the one-iteration path.
* A CFG can also be assembled by hand with :meth:`CFG.new_node` and
  :meth:`CFG.add_edge`; the engine does not care where it came from.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Hashable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from cppcheck_balanced.diagnostics import SourceLocation

_log = logging.getLogger(__name__)

# Names that are followed by '(' without being a call.
_NOT_CALLS = frozenset({
    "if", "while", "for", "switch", "return", "sizeof", "typeof",
    "__typeof__", "_Alignof", "alignof", "__alignof__", "defined",
    "__attribute__", "__builtin_expect", "_Generic", "_Static_assert",
    "static_assert", "asm", "__asm__", "decltype",
    "void", "char", "short", "int", "long", "float", "double",
    "signed", "unsigned", "bool", "_Bool", "struct", "union", "enum",
})


# ---------------------------------------------------------------------------
# Call sites
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CallArgument:
    """One argument expression: its compact text and the base variable."""
    text: str
    symbol: Optional[Hashable] = None


@dataclass(frozen=True)
class CallSite:
    """A direct call to a named function."""
    name: str
    args: Tuple[CallArgument, ...] = ()
    location: SourceLocation = field(default_factory=SourceLocation)

    def arg(self, index: int) -> Optional[CallArgument]:
        if 0 <= index < len(self.args):
            return self.args[index]
        return None

    def __str__(self) -> str:
        return f"{self.name}({', '.join(a.text for a in self.args)})"


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = "fall-through"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"
    BACK_EDGE = "back-edge"
    LOOP_EXIT = "loop-exit"
    BREAK = "break"
    CONTINUE = "continue"
    RETURN = "return"
    GOTO = "goto"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"


# ---------------------------------------------------------------------------
# CFGNode  –  a basic block
# ---------------------------------------------------------------------------


class CFGNode:
    """A basic block in the CFG.

    Attributes
    ----------
    id : int
        Numeric identifier, unique inside its CFG.
    kind : str
        Human-readable tag: ``"entry"``, ``"exit"``, ``"if-cond"``,
        ``"loop-cond"``, ``"return"``, ``"label"``, ``"body"``, ...
    calls : list[CallSite]
        Calls executed by the block, in evaluation order.
    location : SourceLocation
        Where the block starts; for ``"return"`` blocks, the ``return``
        keyword, for the exit node, the closing brace of the function.
    """

    def __init__(
        self,
        node_id: int,
        kind: str = "body",
        calls: Optional[Sequence[CallSite]] = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        self.id = node_id
        self.kind = kind
        self.calls: List[CallSite] = list(calls or [])
        self.location = location or SourceLocation()
        self.successors: List[CFGEdge] = []
        self.predecessors: List[CFGEdge] = []

    @property
    def is_return(self) -> bool:
        return self.kind == "return"

    def label(self) -> str:
        if not self.calls:
            return f"[{self.kind}]"
        return f"[{self.kind}] " + "; ".join(str(c) for c in self.calls)

    def __repr__(self) -> str:
        return f"CFGNode(id={self.id}, kind={self.kind!r}, calls={len(self.calls)})"

    def __hash__(self) -> int:
        return id(self)

    def __eq__(self, other) -> bool:
        return self is other


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------


class CFGEdge:
    """A directed edge ``src → dst``."""

    __slots__ = ("src", "dst", "kind")

    def __init__(self, src: CFGNode, dst: CFGNode, kind: EdgeKind = EdgeKind.FALL_THROUGH) -> None:
        self.src = src
        self.dst = dst
        self.kind = kind

    def __repr__(self) -> str:
        return f"CFGEdge(BB{self.src.id} -> BB{self.dst.id}, {self.kind.value})"


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------


class CFG:
    """Control flow graph of one function."""

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        end_location: Optional[SourceLocation] = None,
    ) -> None:
        self.name = name
        self.location = location or SourceLocation()
        self.nodes: List[CFGNode] = []
        self.edges: List[CFGEdge] = []
        self._ids = itertools.count()
        self.entry = self.new_node("entry", location=self.location)
        self.exit = self.new_node("exit", location=end_location or self.location)

    def new_node(
        self,
        kind: str = "body",
        calls: Optional[Sequence[CallSite]] = None,
        location: Optional[SourceLocation] = None,
    ) -> CFGNode:
        node = CFGNode(next(self._ids), kind=kind, calls=calls, location=location)
        self.nodes.append(node)
        return node

    def add_edge(
        self, src: CFGNode, dst: CFGNode, kind: EdgeKind = EdgeKind.FALL_THROUGH
    ) -> CFGEdge:
        edge = CFGEdge(src, dst, kind)
        src.successors.append(edge)
        dst.predecessors.append(edge)
        self.edges.append(edge)
        return edge

    def successors_of(self, node: CFGNode) -> List[CFGNode]:
        return [e.dst for e in node.successors]

    def predecessors_of(self, node: CFGNode) -> List[CFGNode]:
        return [e.src for e in node.predecessors]

    def reachable_from(self, start: CFGNode) -> Set[CFGNode]:
        seen: Set[CFGNode] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.successors_of(node))
        return seen

    def back_edges(self) -> Set[CFGEdge]:
        """Edges closing a cycle in a DFS from the entry node.

        Explicit ``BACK_EDGE`` edges are always included, so a loop is
        cut at its latch even when the DFS happens to enter it elsewhere.
        """
        result: Set[CFGEdge] = {e for e in self.edges if e.kind is EdgeKind.BACK_EDGE}
        on_stack: Set[CFGNode] = set()
        visited: Set[CFGNode] = set()
        stack: List[Tuple[CFGNode, Iterator[CFGEdge]]] = []

        def push(node: CFGNode) -> None:
            visited.add(node)
            on_stack.add(node)
            stack.append((node, iter(node.successors)))

        push(self.entry)
        while stack:
            node, edges = stack[-1]
            edge = next(edges, None)
            if edge is None:
                on_stack.discard(node)
                stack.pop()
                continue
            if edge in result:
                continue
            if edge.dst in on_stack:
                result.add(edge)
            elif edge.dst not in visited:
                push(edge.dst)
        return result

    def reverse_postorder(self, skip: Optional[Set[CFGEdge]] = None) -> List[CFGNode]:
        """Nodes reachable from the entry in reverse post-order.

        With *skip* set to the back edges, every remaining edge points
        forward in the returned order.
        """
        skip = skip or set()
        visited: Set[CFGNode] = set()
        order: List[CFGNode] = []
        stack: List[Tuple[CFGNode, Iterator[CFGEdge]]] = [(self.entry, iter(self.entry.successors))]
        visited.add(self.entry)
        while stack:
            node, edges = stack[-1]
            edge = next(edges, None)
            if edge is None:
                order.append(node)
                stack.pop()
                continue
            if edge in skip or edge.dst in visited:
                continue
            visited.add(edge.dst)
            stack.append((edge.dst, iter(edge.dst.successors)))
        order.reverse()
        return order

    def __repr__(self) -> str:
        return f"CFG(name={self.name!r}, nodes={len(self.nodes)}, edges={len(self.edges)})"


# ===========================================================================
# TOKEN HELPERS
# ===========================================================================

def _tok_str(tok) -> str:
    """Safely get the string of a token."""
    if tok is None:
        return ""
    return getattr(tok, "str", "") or ""


def _tok_loc(tok) -> SourceLocation:
    if tok is None:
        return SourceLocation()
    return SourceLocation(
        file=getattr(tok, "file", "") or "",
        line=int(getattr(tok, "linenr", 0) or 0),
        column=int(getattr(tok, "column", 0) or 0),
    )


def _is_name(tok) -> bool:
    if getattr(tok, "isName", False):
        return True
    s = _tok_str(tok)
    return bool(s) and (s[0].isalpha() or s[0] == "_") and s.replace("_", "a").isalnum()


def _is_call_name(tok) -> bool:
    """A name directly followed by a linked '(' that is not a keyword or member access."""
    nxt = getattr(tok, "next", None)
    if _tok_str(nxt) != "(" or getattr(nxt, "link", None) is None:
        return False
    if not _is_name(tok) or _tok_str(tok) in _NOT_CALLS:
        return False
    if getattr(tok, "isKeyword", False):
        return False
    return _tok_str(getattr(tok, "previous", None)) not in (".", "->")


def _skip_linked(tok):
    """Jump from an opening bracket to its closing partner."""
    if _tok_str(tok) in ("(", "[", "{") and getattr(tok, "link", None) is not None:
        return tok.link
    return tok


def _call_arguments(lparen) -> Tuple[CallArgument, ...]:
    """Split the tokens between *lparen* and its link at top-level commas."""
    rparen = lparen.link
    args: List[CallArgument] = []
    current: List[Any] = []
    tok = lparen.next
    while tok is not None and tok is not rparen:
        if _tok_str(tok) == ",":
            args.append(_make_argument(current))
            current = []
            tok = tok.next
            continue
        end = _skip_linked(tok)
        while True:
            current.append(tok)
            if tok is end:
                break
            tok = tok.next
        tok = tok.next
    if current or args:
        args.append(_make_argument(current))
    return tuple(args)


def _make_argument(tokens: List[Any]) -> CallArgument:
    text = "".join(_tok_str(t) for t in tokens)
    symbol = None
    for t in tokens:
        vid = getattr(t, "varId", None)
        if vid:
            symbol = vid
            break
    return CallArgument(text=text, symbol=symbol)


def extract_calls(start, end) -> List[CallSite]:
    """Calls found in the token range ``[start, end)``, innermost first."""
    calls: List[CallSite] = []
    tok = start
    while tok is not None and tok is not end:
        if _is_call_name(tok):
            lparen = tok.next
            calls.extend(extract_calls(lparen.next, lparen.link))
            calls.append(CallSite(
                name=_tok_str(tok),
                args=_call_arguments(lparen),
                location=_tok_loc(tok),
            ))
            tok = lparen.link.next
            continue
        tok = tok.next
    return calls


# ===========================================================================
# CFG BUILDER
# ===========================================================================

@dataclass
class _JumpTargets:
    break_target: Optional[CFGNode] = None
    continue_target: Optional[CFGNode] = None


class _CFGBuilder:
    """Internal builder that constructs a CFG for a single function scope.

    The algorithm is a recursive descent over statements.  Each
    ``_process_*`` method receives the block that is live before the
    statement (``None`` when the statement is unreachable) and returns
    the next token plus the block that is live after it.
    """

    def __init__(self, scope, name: str) -> None:
        self.scope = scope
        self.cfg = CFG(
            name,
            location=_tok_loc(scope.bodyStart),
            end_location=_tok_loc(scope.bodyEnd),
        )
        self._labels: Dict[str, CFGNode] = {}
        self._pending_gotos: List[Tuple[CFGNode, str]] = []

    # ----- helpers ----------------------------------------------------------

    def _new_block(self, kind: str = "body", tok=None) -> CFGNode:
        return self.cfg.new_node(kind, location=_tok_loc(tok) if tok is not None else None)

    def _edge(self, src: Optional[CFGNode], dst: CFGNode, kind=EdgeKind.FALL_THROUGH) -> None:
        if src is not None:
            self.cfg.add_edge(src, dst, kind)

    def _live(self, current: Optional[CFGNode], tok) -> CFGNode:
        # Code after return/break/goto still gets a block; it just has no
        # predecessors, so the engine never visits it.
        if current is None:
            return self._new_block("unreachable", tok)
        return current

    @staticmethod
    def _statement_end(tok, limit_tok):
        """The ';' ending the statement that starts at *tok*, or None."""
        while tok is not None and tok is not limit_tok:
            if tok.str == ";":
                return tok
            tok = _skip_linked(tok).next
        return None

    @staticmethod
    def _condition(tok):
        """Return (lparen, rparen) when *tok* is a linked '(' else (None, None)."""
        if _tok_str(tok) == "(" and getattr(tok, "link", None) is not None:
            return tok, tok.link
        return None, None

    # ----- main build -------------------------------------------------------

    def build(self) -> CFG:
        body_start = self.scope.bodyStart
        body_end = self.scope.bodyEnd

        first = self._new_block("body", body_start)
        self._edge(self.cfg.entry, first)
        after = self._process_compound(body_start.next, body_end, first, _JumpTargets())
        self._edge(after, self.cfg.exit)

        for goto_block, label in self._pending_gotos:
            target = self._labels.get(label)
            if target is None:
                _log.debug("%s: goto to unknown label %r", self.cfg.name, label)
                target = self.cfg.exit
            self._edge(goto_block, target, EdgeKind.GOTO)
        return self.cfg

    def _process_compound(self, tok, limit_tok, current, targets: _JumpTargets):
        while tok is not None and tok is not limit_tok:
            tok, current = self._process_statement(tok, limit_tok, current, targets)
        return current

    def _process_statement(self, tok, limit_tok, current, targets: _JumpTargets):
        s = _tok_str(tok)
        nxt = getattr(tok, "next", None)

        if s == "{":
            end = getattr(tok, "link", None) or limit_tok
            current = self._process_compound(tok.next, end, current, targets)
            return (end.next if end is not limit_tok else end), current

        if s == ";":
            return tok.next, current

        if s in ("case", "default"):
            # Stray label outside the top level of a switch body.
            while tok is not None and tok is not limit_tok and tok.str != ":":
                tok = tok.next
            return (tok.next if tok is not None and tok is not limit_tok else tok), current

        if (
            _is_name(tok)
            and _tok_str(nxt) == ":"
            and _tok_str(getattr(nxt, "next", None)) != ":"
        ):
            label_block = self._new_block("label", tok)
            self._edge(current, label_block)
            self._labels[s] = label_block
            return nxt.next, label_block

        if s == "if":
            return self._process_if(tok, limit_tok, current, targets)
        if s == "while":
            return self._process_while(tok, limit_tok, current, targets)
        if s == "for":
            return self._process_for(tok, limit_tok, current, targets)
        if s == "do":
            return self._process_do_while(tok, limit_tok, current, targets)
        if s == "switch":
            return self._process_switch(tok, limit_tok, current, targets)
        if s == "return":
            return self._process_return(tok, limit_tok, current)

        if s in ("break", "continue", "goto"):
            semi = self._statement_end(tok, limit_tok)
            if current is not None:
                if s == "goto":
                    self._pending_gotos.append((current, _tok_str(nxt)))
                else:
                    target = targets.break_target if s == "break" else targets.continue_target
                    kind = EdgeKind.BREAK if s == "break" else EdgeKind.CONTINUE
                    self._edge(current, target or self.cfg.exit, kind)
            return (semi.next if semi is not None else limit_tok), None

        # ---- ordinary expression / declaration statement --------------------
        semi = self._statement_end(tok, limit_tok)
        calls = extract_calls(tok, semi if semi is not None else limit_tok)
        if calls:
            current = self._live(current, tok)
            current.calls.extend(calls)
        return (semi.next if semi is not None else limit_tok), current

    # -----------------------------------------------------------------------
    # return
    # -----------------------------------------------------------------------

    def _process_return(self, tok, limit_tok, current):
        semi = self._statement_end(tok, limit_tok)
        ret = self._new_block("return", tok)
        ret.calls.extend(extract_calls(tok.next, semi if semi is not None else limit_tok))
        self._edge(current, ret)
        self.cfg.add_edge(ret, self.cfg.exit, EdgeKind.RETURN)
        return (semi.next if semi is not None else limit_tok), None

    # -----------------------------------------------------------------------
    # if / else
    # -----------------------------------------------------------------------

    def _process_if(self, tok, limit_tok, current, targets):
        lparen, rparen = self._condition(tok.next)
        if lparen is None:
            return tok.next, current

        cond = self._new_block("if-cond", tok)
        cond.calls.extend(extract_calls(lparen.next, rparen))
        self._edge(current, cond)

        then_block = self._new_block("if-true", rparen.next)
        self.cfg.add_edge(cond, then_block, EdgeKind.BRANCH_TRUE)
        tok, then_exit = self._process_statement(rparen.next, limit_tok, then_block, targets)

        else_exit: Optional[CFGNode] = None
        has_else = _tok_str(tok) == "else"
        if has_else:
            else_block = self._new_block("if-false", tok)
            self.cfg.add_edge(cond, else_block, EdgeKind.BRANCH_FALSE)
            tok, else_exit = self._process_statement(tok.next, limit_tok, else_block, targets)

        if then_exit is None and else_exit is None and has_else:
            return tok, None

        merge = self._new_block("if-merge", tok)
        if not has_else:
            self.cfg.add_edge(cond, merge, EdgeKind.BRANCH_FALSE)
        self._edge(then_exit, merge)
        self._edge(else_exit, merge)
        return tok, merge

    # -----------------------------------------------------------------------
    # loops
    # -----------------------------------------------------------------------

    def _loop(self, cond: CFGNode, body_tok, limit_tok, latch_calls, targets_outer):
        """Shared tail of ``while`` and ``for``: body, latch and exit."""
        after = self._new_block("loop-after")
        latch = self._new_block("loop-latch")
        latch.calls.extend(latch_calls)

        body = self._new_block("loop-body", body_tok)
        self.cfg.add_edge(cond, body, EdgeKind.BRANCH_TRUE)
        self.cfg.add_edge(cond, after, EdgeKind.BRANCH_FALSE)

        inner = _JumpTargets(break_target=after, continue_target=latch)
        tok, body_exit = self._process_statement(body_tok, limit_tok, body, inner)
        self._edge(body_exit, latch)
        self.cfg.add_edge(latch, cond, EdgeKind.BACK_EDGE)
        self.cfg.add_edge(latch, after, EdgeKind.LOOP_EXIT)
        return tok, after

    def _process_while(self, tok, limit_tok, current, targets):
        lparen, rparen = self._condition(tok.next)
        if lparen is None:
            return tok.next, current
        cond = self._new_block("loop-cond", tok)
        cond.calls.extend(extract_calls(lparen.next, rparen))
        self._edge(current, cond)
        return self._loop(cond, rparen.next, limit_tok, [], targets)

    def _process_for(self, tok, limit_tok, current, targets):
        lparen, rparen = self._condition(tok.next)
        if lparen is None:
            return tok.next, current

        # for ( init ; cond ; incr )
        first_semi = self._statement_end(lparen.next, rparen)
        second_semi = (
            self._statement_end(first_semi.next, rparen) if first_semi is not None else None
        )
        if first_semi is None or second_semi is None:
            # range-for or macro-mangled header: treat the header as the condition
            init_calls: List[CallSite] = []
            cond_calls = extract_calls(lparen.next, rparen)
            incr_calls: List[CallSite] = []
        else:
            init_calls = extract_calls(lparen.next, first_semi)
            cond_calls = extract_calls(first_semi.next, second_semi)
            incr_calls = extract_calls(second_semi.next, rparen)

        if init_calls:
            current = self._live(current, tok)
            current.calls.extend(init_calls)
        cond = self._new_block("loop-cond", tok)
        cond.calls.extend(cond_calls)
        self._edge(current, cond)
        return self._loop(cond, rparen.next, limit_tok, incr_calls, targets)

    def _process_do_while(self, tok, limit_tok, current, targets):
        after = self._new_block("loop-after")
        cond = self._new_block("loop-cond")
        body = self._new_block("loop-body", tok.next)
        self._edge(current, body)

        inner = _JumpTargets(break_target=after, continue_target=cond)
        tok, body_exit = self._process_statement(tok.next, limit_tok, body, inner)
        self._edge(body_exit, cond)

        if _tok_str(tok) == "while":
            lparen, rparen = self._condition(tok.next)
            if lparen is not None:
                cond.location = _tok_loc(tok)
                cond.calls.extend(extract_calls(lparen.next, rparen))
                tok = rparen.next
            if _tok_str(tok) == ";":
                tok = tok.next
        self.cfg.add_edge(cond, body, EdgeKind.BACK_EDGE)
        self.cfg.add_edge(cond, after, EdgeKind.BRANCH_FALSE)
        return tok, after

    # -----------------------------------------------------------------------
    # switch
    # -----------------------------------------------------------------------

    def _process_switch(self, tok, limit_tok, current, targets):
        lparen, rparen = self._condition(tok.next)
        if lparen is None:
            return tok.next, current

        dispatch = self._new_block("switch-dispatch", tok)
        dispatch.calls.extend(extract_calls(lparen.next, rparen))
        self._edge(current, dispatch)
        after = self._new_block("switch-after")

        tok = rparen.next
        if _tok_str(tok) != "{" or getattr(tok, "link", None) is None:
            self._edge(dispatch, after)
            return tok, after

        body_end = tok.link
        inner = _JumpTargets(break_target=after, continue_target=targets.continue_target)
        has_default = False
        case_block: Optional[CFGNode] = None
        tok = tok.next

        while tok is not None and tok is not body_end:
            s = _tok_str(tok)
            if s in ("case", "default"):
                is_default = s == "default"
                has_default = has_default or is_default
                new_case = self._new_block("default" if is_default else "case", tok)
                self.cfg.add_edge(
                    dispatch, new_case,
                    EdgeKind.SWITCH_DEFAULT if is_default else EdgeKind.SWITCH_CASE,
                )
                # Fall-through from the previous case
                self._edge(case_block, new_case)
                case_block = new_case
                while tok is not None and tok is not body_end and tok.str != ":":
                    tok = _skip_linked(tok).next
                if tok is not None and tok is not body_end:
                    tok = tok.next
                continue
            tok, case_block = self._process_statement(tok, body_end, case_block, inner)

        self._edge(case_block, after)
        if not has_default:
            self.cfg.add_edge(dispatch, after, EdgeKind.FALL_THROUGH)
        return body_end.next, after


# ===========================================================================
# PUBLIC API
# ===========================================================================

def _scope_name(scope) -> str:
    func = getattr(scope, "function", None)
    name = getattr(func, "name", None) if func is not None else None
    return name or getattr(scope, "className", None) or "<anonymous>"


def build_cfg(scope) -> Optional[CFG]:
    """Build a :class:`CFG` for a single ``Function`` scope.

    Returns ``None`` if the scope has no body (forward declaration, etc.).
    """
    if getattr(scope, "type", None) != "Function":
        return None
    if getattr(scope, "bodyStart", None) is None or getattr(scope, "bodyEnd", None) is None:
        return None
    return _CFGBuilder(scope, _scope_name(scope)).build()


def build_all_cfgs(cfg_config) -> List[CFG]:
    """Build CFGs for every function that has a body in *cfg_config*.

    The order is the order of the scopes in the dump file.
    """
    result: List[CFG] = []
    for scope in getattr(cfg_config, "scopes", None) or []:
        cfg = build_cfg(scope)
        if cfg is not None:
            result.append(cfg)
    return result


def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for node in cfg.nodes:
        succ_ids = ", ".join(f"BB{e.dst.id}({e.kind.value})" for e in node.successors)
        lines.append(f"  BB{node.id} {node.label()}  succ=[{succ_ids}]")
    return "\n".join(lines)


__all__ = [
    "CallArgument",
    "CallSite",
    "EdgeKind",
    "CFGNode",
    "CFGEdge",
    "CFG",
    "extract_calls",
    "build_cfg",
    "build_all_cfgs",
    "cfg_summary",
]
