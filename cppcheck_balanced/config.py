"""
cppcheck_balanced.config
========================

Loading protocol families into a :class:`ProtocolRegistry`.

Two input formats are understood.

Native ``.balanced_funcs`` text
-------------------------------
A stream of C-like tokens (``//`` and ``/* */`` comments are ignored).
Each family is a name, the functions of its LEFT group, a delimiter,
the functions of its RIGHT group and another delimiter.  Any single
punctuation token is a delimiter; ``;`` is the convention::

    preempt   preempt_disable ;  preempt_enable preempt_enable_no_resched ;
    local_irq local_irq_disable ; local_irq_enable ;

S-expressions (``.sexp``)
-------------------------
One ``family`` form per family, parsed with :mod:`sexpdata`::

    (family preempt (left preempt_disable) (right preempt_enable))
    (family mutex (left mutex_lock) (right mutex_unlock) (track-arg 0))

``track-arg N`` tracks the ``N``-th argument of each call instead of one
object named after the family.

Both loaders register families only once they are complete.  The first
malformed or truncated family stops loading; the families before it
stay registered.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import sexpdata
from sexpdata import Symbol

from cppcheck_balanced.errors import ConfigError, ConfigSyntaxError, SourceSpan
from cppcheck_balanced.protocol import ArgumentKey, FamilyKey, ProtocolRegistry

_log = logging.getLogger(__name__)

DEFAULT_PROJECT = "kernel"
CONFIG_SUFFIX = ".balanced_funcs"
_BUILTIN_DATA_DIR = Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class FamilySpec:
    """A parsed protocol family."""
    name: str
    left: Tuple[str, ...]
    right: Tuple[str, ...]
    track_arg: Optional[int] = None
    span: SourceSpan = SourceSpan()

    def register_into(self, registry: ProtocolRegistry) -> None:
        extractor = ArgumentKey(self.track_arg) if self.track_arg is not None else FamilyKey(self.name)
        registry.register_family(self.name, list(self.left), list(self.right), extractor)


# ═══════════════════════════════════════════════════════════════════════
#  Native text format
# ═══════════════════════════════════════════════════════════════════════

_TOKEN_RE = re.compile(
    r"""
      (?P<comment>//[^\n]*|/\*.*?\*/)
    | (?P<ws>\s+)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<number>[0-9][A-Za-z0-9_.]*)
    | (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')
    | (?P<special>.)
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    span: SourceSpan


def tokenize(text: str, file: str = "<string>") -> Iterator[_Token]:
    """Split *text* into ident / number / string / special tokens."""
    line = 1
    line_start = 0
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup or "special"
        value = match.group()
        if kind not in ("comment", "ws"):
            span = SourceSpan(file=file, line=line, column=match.start() - line_start + 1)
            yield _Token(kind, value, span)
        newlines = value.count("\n")
        if newlines:
            line += newlines
            line_start = match.start() + value.rfind("\n") + 1


def _parse_group(tokens: Sequence[_Token], pos: int, family: str, side: str) -> Tuple[List[str], int]:
    funcs: List[str] = []
    while pos < len(tokens) and tokens[pos].kind == "ident":
        funcs.append(tokens[pos].text)
        pos += 1
    if pos >= len(tokens):
        raise ConfigSyntaxError(
            f"family '{family}' ends before its {side} group is closed",
            span=tokens[-1].span if tokens else None,
            family=family,
        )
    tok = tokens[pos]
    if tok.kind != "special":
        raise ConfigSyntaxError(
            f"unexpected {tok.kind} '{tok.text}' in {side} group of family '{family}'",
            span=tok.span,
            family=family,
            got=tok.text,
        )
    return funcs, pos + 1


def _parse_family(tokens: Sequence[_Token], pos: int) -> Tuple[FamilySpec, int]:
    head = tokens[pos]
    if head.kind != "ident":
        raise ConfigSyntaxError(
            f"expected a family name, got '{head.text}'", span=head.span, got=head.text,
        )
    left, pos = _parse_group(tokens, pos + 1, head.text, "left")
    right, pos = _parse_group(tokens, pos, head.text, "right")
    return FamilySpec(head.text, tuple(left), tuple(right), span=head.span), pos


def parse_balanced_funcs(text: str, file: str = "<string>") -> List[FamilySpec]:
    """Parse the native format; stops quietly at the first bad family."""
    tokens = list(tokenize(text, file))
    families: List[FamilySpec] = []
    pos = 0
    while pos < len(tokens):
        try:
            family, pos = _parse_family(tokens, pos)
        except ConfigSyntaxError as exc:
            _log.warning("%s; ignoring the rest of %s", exc, file)
            break
        families.append(family)
    return families


# ═══════════════════════════════════════════════════════════════════════
#  S-expression format
# ═══════════════════════════════════════════════════════════════════════

def _split_forms(text: str, file: str) -> Iterator[Tuple[str, SourceSpan]]:
    """Yield each complete top-level ``( ... )`` form with its position.

    Raises :class:`ConfigSyntaxError` for text outside a form or for a
    form that is never closed.
    """
    depth = 0
    start = 0
    line = 1
    start_line = 1
    in_string = False
    in_comment = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\n":
            line += 1
            in_comment = False
        elif in_comment:
            pass
        elif in_string:
            if ch == "\\":
                i += 1
            elif ch == '"':
                in_string = False
        elif ch == ";":
            in_comment = True
        elif ch == '"':
            in_string = True
        elif ch == "(":
            if depth == 0:
                start, start_line = i, line
            depth += 1
        elif ch == ")":
            if depth == 0:
                raise ConfigSyntaxError("unbalanced ')'", span=SourceSpan(file, line), got=")")
            depth -= 1
            if depth == 0:
                yield text[start:i + 1], SourceSpan(file, start_line)
        elif depth == 0 and not ch.isspace():
            raise ConfigSyntaxError(
                f"unexpected '{ch}' outside a family form", span=SourceSpan(file, line), got=ch,
            )
        i += 1
    if depth:
        raise ConfigSyntaxError("truncated family form", span=SourceSpan(file, start_line))


def _sym(value, what: str, span: SourceSpan) -> str:
    if isinstance(value, Symbol):
        return value.value()
    if isinstance(value, str):
        return value
    raise ConfigSyntaxError(f"expected {what}, got {value!r}", span=span, got=repr(value))


def _parse_sexp_family(raw, span: SourceSpan) -> FamilySpec:
    if not isinstance(raw, list) or len(raw) < 2 or _sym(raw[0], "'family'", span) != "family":
        raise ConfigSyntaxError(f"expected (family NAME ...), got {raw!r}", span=span)
    name = _sym(raw[1], "a family name", span)
    groups = {}
    track_arg: Optional[int] = None
    for clause in raw[2:]:
        if not isinstance(clause, list) or not clause:
            raise ConfigSyntaxError(f"bad clause {clause!r} in family '{name}'", span=span, family=name)
        tag = _sym(clause[0], "a clause name", span)
        if tag in ("left", "right"):
            groups[tag] = tuple(_sym(f, "a function name", span) for f in clause[1:])
        elif tag == "track-arg":
            if len(clause) != 2 or not isinstance(clause[1], int) or isinstance(clause[1], bool) or clause[1] < 0:
                raise ConfigSyntaxError(
                    f"track-arg of family '{name}' needs one non-negative integer", span=span, family=name,
                )
            track_arg = clause[1]
        else:
            raise ConfigSyntaxError(f"unknown clause '{tag}' in family '{name}'", span=span, family=name)
    if "left" not in groups or "right" not in groups:
        raise ConfigSyntaxError(f"family '{name}' needs both a left and a right group", span=span, family=name)
    return FamilySpec(name, groups["left"], groups["right"], track_arg=track_arg, span=span)


def parse_sexp_families(text: str, file: str = "<string>") -> List[FamilySpec]:
    """Parse the S-expression format; stops quietly at the first bad family."""
    families: List[FamilySpec] = []
    try:
        for chunk, span in _split_forms(text, file):
            try:
                raw = sexpdata.loads(chunk, nil=None, true=None, false=None)
            except Exception as e:
                raise ConfigSyntaxError(f"S-expression syntax error: {e}", span=span, cause=e)
            families.append(_parse_sexp_family(raw, span))
    except ConfigSyntaxError as exc:
        _log.warning("%s; ignoring the rest of %s", exc, file)
    return families


# ═══════════════════════════════════════════════════════════════════════
#  Files and registries
# ═══════════════════════════════════════════════════════════════════════

def find_config_file(
    data_dir: Optional[Union[str, Path]] = None,
    project: str = DEFAULT_PROJECT,
) -> Optional[Path]:
    """Locate ``<project>.balanced_funcs``.

    *data_dir* is searched first, then the data shipped with the package.
    """
    candidates: List[Path] = []
    if data_dir is not None:
        candidates.append(Path(data_dir).expanduser())
    candidates.append(_BUILTIN_DATA_DIR)
    for directory in candidates:
        path = directory / f"{project}{CONFIG_SUFFIX}"
        if path.is_file():
            return path
    return None


def load_families(path: Union[str, Path]) -> List[FamilySpec]:
    """Read and parse one configuration file, choosing the format by suffix."""
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise ConfigError(f"cannot read {p}: {e}", span=SourceSpan(file=str(p)), cause=e)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        # the prefix is valid UTF-8; a family cut by it is dropped as truncated
        _log.warning("%s: invalid UTF-8 at byte %d; ignoring the rest of the file", p, e.start)
        text = data[:e.start].decode("utf-8")
    if p.suffix == ".sexp":
        return parse_sexp_families(text, file=str(p))
    return parse_balanced_funcs(text, file=str(p))


def load_protocol_registry(
    path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
    project: str = DEFAULT_PROJECT,
    registry: Optional[ProtocolRegistry] = None,
) -> ProtocolRegistry:
    """Build (or extend) a registry from *path* or the project's data file.

    A missing project file yields an empty registry; an explicit *path*
    that cannot be read raises :class:`ConfigError`.
    """
    registry = registry if registry is not None else ProtocolRegistry()
    if path is None:
        path = find_config_file(data_dir, project)
        if path is None:
            _log.info("no %s%s found; nothing to check", project, CONFIG_SUFFIX)
            return registry
    families = load_families(path)
    for family in families:
        family.register_into(registry)
    _log.info("loaded %d protocol family(ies) from %s", len(families), path)
    return registry


__all__ = [
    "DEFAULT_PROJECT",
    "FamilySpec",
    "tokenize",
    "parse_balanced_funcs",
    "parse_sexp_families",
    "find_config_file",
    "load_families",
    "load_protocol_registry",
]
