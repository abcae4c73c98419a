"""Language-aware comment removal that keeps line numbering intact.

Every stripper returns text with exactly as many ``\\n``-separated lines as its
input: a line that only held a comment becomes an empty line, it is never
removed. Lexical strippers are driven by :func:`advance`, a pure transition
function over :class:`LexState`, so comment markers inside string literals are
left untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Protocol

from context_snapshot.config import FileType


class Mode(StrEnum):
    NORMAL = auto()
    IN_STRING = auto()
    IN_TRIPLE_STRING = auto()
    IN_BLOCK_COMMENT = auto()


@dataclass(frozen=True)
class LexState:
    """Lexer state carried from one character (and one line) to the next."""

    mode: Mode = Mode.NORMAL
    delimiter: str = ""


NORMAL = LexState()


@dataclass(frozen=True)
class CommentSyntax:
    """Lexical description of one language family.

    Attributes:
        line_markers: Tokens that comment out the rest of the line.
        block: Opening and closing tokens of block comments, if any.
        quotes: Characters opening a string literal.
        multiline_quotes: Quotes whose strings may span lines.
        raw_quotes: Quotes inside which a backslash is not an escape.
        triple_quotes: Recognize ``\"\"\"`` / ``'''`` strings spanning lines.
        marker_needs_space: Line markers count only at line start or after whitespace.
        quote_needs_boundary: Quotes open a string only at a token boundary.
        not_markers: Prefixes that look like a line marker but are code (``#[``).
        keep_shebang: Leave a ``#!`` first line alone.
    """

    line_markers: tuple[str, ...] = ()
    block: tuple[str, str] | None = None
    quotes: tuple[str, ...] = ('"', "'")
    multiline_quotes: tuple[str, ...] = ()
    raw_quotes: tuple[str, ...] = ()
    triple_quotes: bool = False
    marker_needs_space: bool = False
    quote_needs_boundary: bool = False
    not_markers: tuple[str, ...] = ()
    keep_shebang: bool = False


@dataclass(frozen=True)
class Step:
    """Result of one transition: next state, text to keep, characters consumed."""

    state: LexState
    emit: str
    consumed: int
    truncate: bool = False


def _is_line_marker(line: str, pos: int, marker: str, syntax: CommentSyntax) -> bool:
    if not line.startswith(marker, pos):
        return False
    if any(line.startswith(nm, pos) for nm in syntax.not_markers):
        return False
    return not syntax.marker_needs_space or pos == 0 or line[pos - 1].isspace()


def _opens_string(line: str, pos: int, syntax: CommentSyntax) -> bool:
    if line[pos] not in syntax.quotes:
        return False
    if not syntax.quote_needs_boundary or pos == 0:
        return True
    prev = line[pos - 1]
    return prev.isspace() or prev in "[{(,:=-"


def advance(state: LexState, line: str, pos: int, syntax: CommentSyntax) -> Step:
    """Advance the lexer over the token starting at ``line[pos]``.

    Args:
        state (LexState): the state before the token
        line (str): the line being scanned, without its newline
        pos (int): index of the current character
        syntax (CommentSyntax): the language rules

    Returns:
        Step: the new state, the text to emit (empty for comment text), how many
            characters were consumed (always at least one), and whether the rest
            of the line is a comment
    """
    ch = line[pos]

    if state.mode is Mode.IN_BLOCK_COMMENT:
        if syntax.block is not None and line.startswith(syntax.block[1], pos):
            return Step(NORMAL, "", len(syntax.block[1]))
        return Step(state, "", 1)

    if state.mode in {Mode.IN_STRING, Mode.IN_TRIPLE_STRING}:
        if ch == "\\" and state.delimiter not in syntax.raw_quotes:
            pair = line[pos : pos + 2]
            return Step(state, pair, len(pair))
        if line.startswith(state.delimiter, pos):
            return Step(NORMAL, state.delimiter, len(state.delimiter))
        return Step(state, ch, 1)

    if syntax.block is not None and line.startswith(syntax.block[0], pos):
        return Step(LexState(Mode.IN_BLOCK_COMMENT), "", len(syntax.block[0]))

    for marker in syntax.line_markers:
        if _is_line_marker(line, pos, marker, syntax):
            return Step(state, "", len(line) - pos, truncate=True)

    if _opens_string(line, pos, syntax):
        if syntax.triple_quotes and line.startswith(ch * 3, pos):
            return Step(LexState(Mode.IN_TRIPLE_STRING, ch * 3), ch * 3, 3)
        return Step(LexState(Mode.IN_STRING, ch), ch, 1)

    return Step(state, ch, 1)


def strip_line(line: str, state: LexState, syntax: CommentSyntax) -> tuple[str, LexState]:
    """Strip comments from one line, returning the kept text and the carried state.

    Ordinary strings left open at the end of the line are closed; block comments,
    triple-quoted strings and multiline quotes carry over to the next line.
    """
    pieces: list[str] = []
    pos = 0
    while pos < len(line):
        step = advance(state, line, pos, syntax)
        pieces.append(step.emit)
        state = step.state
        pos += step.consumed
        if step.truncate:
            break
    if state.mode is Mode.IN_STRING and state.delimiter not in syntax.multiline_quotes:
        state = NORMAL
    return "".join(pieces), state


def _finish_line(original: str, stripped: str, *, open_literal: bool = False) -> str:
    if stripped == original:
        return original
    # Trailing whitespace of a literal that continues on the next line is content.
    if open_literal:
        return stripped
    return stripped.rstrip() if stripped.strip() else ""


class CommentStripper(Protocol):
    def strip(self, content: str) -> str: ...


class LexicalStripper:
    """String-aware stripper driven by a :class:`CommentSyntax`."""

    def __init__(self, syntax: CommentSyntax) -> None:
        self.syntax = syntax

    def strip(self, content: str) -> str:
        state = NORMAL
        out: list[str] = []
        for idx, line in enumerate(content.split("\n")):
            if idx == 0 and self.syntax.keep_shebang and line.startswith("#!"):
                out.append(line)
                continue
            stripped, state = strip_line(line, state, self.syntax)
            open_literal = state.mode in {Mode.IN_STRING, Mode.IN_TRIPLE_STRING}
            out.append(_finish_line(line, stripped, open_literal=open_literal))
        return "\n".join(out)


_MARKUP_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)


class MarkupStripper:
    """Removes ``<!-- -->`` comments, replacing each by the newlines it spanned."""

    def strip(self, content: str) -> str:
        text = _MARKUP_COMMENT.sub(lambda m: "\n" * m.group(0).count("\n"), content)
        return "\n".join("" if not ln.strip() else ln for ln in text.split("\n"))


class PassthroughStripper:
    """For formats without comments (JSON)."""

    def strip(self, content: str) -> str:
        return content


_GENERIC_PATTERNS = (
    re.compile(r"^\s*#.*$"),
    re.compile(r"^\s*//.*$"),
    re.compile(r"/\*.*?\*/"),
)


class GenericStripper:
    """Best-effort fallback: full-line ``#``/``//`` and same-line ``/* */``, no string awareness."""

    def strip(self, content: str) -> str:
        out: list[str] = []
        for line in content.split("\n"):
            stripped = line
            for rx in _GENERIC_PATTERNS:
                stripped = rx.sub("", stripped)
            out.append(_finish_line(line, stripped))
        return "\n".join(out)


C_FAMILY = CommentSyntax(line_markers=("//",), block=("/*", "*/"))
BACKTICK_C_FAMILY = CommentSyntax(
    line_markers=("//",),
    block=("/*", "*/"),
    quotes=('"', "'", "`"),
    multiline_quotes=("`",),
)
RUST = CommentSyntax(line_markers=("//",), block=("/*", "*/"), quotes=('"',))
PHP = CommentSyntax(
    line_markers=("//", "#"),
    block=("/*", "*/"),
    multiline_quotes=('"', "'"),
    not_markers=("#[",),
)
CSS = CommentSyntax(block=("/*", "*/"))
SQL = CommentSyntax(line_markers=("--",), block=("/*", "*/"), multiline_quotes=('"', "'"))
PYTHON = CommentSyntax(line_markers=("#",), triple_quotes=True, keep_shebang=True)
TOML = CommentSyntax(line_markers=("#",), triple_quotes=True)
SHELL = CommentSyntax(line_markers=("#",), marker_needs_space=True, raw_quotes=("'",), keep_shebang=True)
RUBY = CommentSyntax(line_markers=("#",), keep_shebang=True)
YAML = CommentSyntax(line_markers=("#",), marker_needs_space=True, quote_needs_boundary=True)

GENERIC = GenericStripper()

STRIPPERS: dict[str, CommentStripper] = {}


def register_stripper(key: str | list[str], stripper: CommentStripper) -> CommentStripper:
    """Register a stripper under one or more language tags.

    Args:
        key (str | list[str]): a language tag (``FileType`` value or extension alias)
            or a list of them
        stripper (CommentStripper): the strategy handling those tags

    Returns:
        CommentStripper: the registered stripper
    """
    for k in [key] if isinstance(key, str) else key:
        STRIPPERS[k.lower()] = stripper
    return stripper


register_stripper([FileType.PHP], LexicalStripper(PHP))
register_stripper(
    [FileType.C, FileType.CPP, FileType.JAVA, FileType.KOTLIN, FileType.SWIFT, FileType.CSHARP, FileType.SCSS],
    LexicalStripper(C_FAMILY),
)
register_stripper(
    [FileType.JAVASCRIPT, FileType.TYPESCRIPT, FileType.GO, "js", "jsx", "ts", "tsx"],
    LexicalStripper(BACKTICK_C_FAMILY),
)
register_stripper([FileType.RUST, "rs"], LexicalStripper(RUST))
register_stripper([FileType.CSS], LexicalStripper(CSS))
register_stripper([FileType.SQL], LexicalStripper(SQL))
register_stripper([FileType.PYTHON, "py"], LexicalStripper(PYTHON))
register_stripper([FileType.TOML], LexicalStripper(TOML))
register_stripper([FileType.BASH, "sh", "zsh", "fish"], LexicalStripper(SHELL))
register_stripper([FileType.RUBY, "rb"], LexicalStripper(RUBY))
register_stripper([FileType.YAML, "yml"], LexicalStripper(YAML))
register_stripper([FileType.HTML, FileType.XML, FileType.MARKDOWN, "htm", "md"], MarkupStripper())
register_stripper([FileType.JSON, FileType.TEXT, "txt"], PassthroughStripper())


def get_stripper(language_tag: str) -> CommentStripper:
    """Return the stripper registered for a tag, or the generic fallback."""
    return STRIPPERS.get(language_tag.lower(), GENERIC)


def strip_comments(content: str, language_tag: str) -> str:
    """Remove comments from ``content`` according to ``language_tag``.

    Args:
        content (str): the source text
        language_tag (str): a ``FileType`` value (or extension alias); unknown tags
            use the generic, string-unaware fallback

    Returns:
        str: the text without comments, with the same number of lines
    """
    return get_stripper(language_tag).strip(content)
