"""Reader for the game's hierarchical script format.

Game data and text saves share one syntax::

    state = {
        id = 1
        provinces = { 3838 9851 11804 }
        history = { owner = FRA 1936.1.1 = { add_core_of = FRA } }
    }
    color = rgb { 25 75 210 }

A document is an object body. Entries are either ``key <op> value`` or a bare
value (lists such as ``provinces``). Keys may repeat, so a :class:`Node` keeps
every entry in file order.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from .errors import MalformedRecord


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\f\v]+)
    |(?P<nl>\n)
    |(?P<comment>\#[^\n]*)
    |"(?P<string>(?:[^"\\]|\\.)*)"
    |(?P<op><=|>=|!=|\?=|==|[{}=<>])
    |(?P<word>[^ \t\r\n\f\v{}=<>"\#]+)
    |(?P<bad>.)
    """,
    re.VERBOSE | re.DOTALL,
)

Token = Tuple[str, str, int]
Value = Union[str, "Node"]


class Node:
    """One ``{ ... }`` block (or the whole document)."""

    __slots__ = ("entries", "tag", "line")

    def __init__(self, *, line: int = 1, tag: str | None = None) -> None:
        self.entries: List[Tuple[Optional[str], Value, int]] = []
        self.tag = tag
        self.line = line

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        tag = f"{self.tag} " if self.tag else ""
        return f"<Node {tag}line={self.line} entries={len(self.entries)}>"

    def fields(self) -> Iterator[Tuple[str, Value]]:
        for key, value, _line in self.entries:
            if key is not None:
                yield key, value

    def fields_with_lines(self) -> Iterator[Tuple[str, Value, int]]:
        for key, value, line in self.entries:
            if key is not None:
                yield key, value, line

    def values(self) -> List[Value]:
        return [value for key, value, _line in self.entries if key is None]

    def get(self, key: str, default: Value | None = None) -> Value | None:
        for name, value, _line in self.entries:
            if name == key:
                return value
        return default

    def get_all(self, key: str) -> List[Value]:
        return [value for name, value, _line in self.entries if name == key]

    def line_of(self, key: str) -> int:
        for name, _value, line in self.entries:
            if name == key:
                return line
        return self.line

    def first(self) -> Tuple[str, Value] | None:
        return next(self.fields(), None)


def decode_game_text(raw: bytes) -> str:
    """Game files are UTF-8 (often with BOM) or Windows-1252."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("cp1252", errors="replace")


def read_game_file(path: Path) -> str:
    return decode_game_text(Path(path).read_bytes())


def _tokenize(text: str, source: str, *, pos: int = 0, line: int = 1) -> Iterator[Token]:
    for m in _TOKEN_RE.finditer(text, pos):
        kind = m.lastgroup
        if kind == "nl":
            line += 1
        elif kind in ("ws", "comment"):
            continue
        elif kind == "string":
            value = m.group("string")
            yield "str", value.replace('\\"', '"').replace("\\\\", "\\"), line
            line += value.count("\n")
        elif kind == "bad":
            raise MalformedRecord(source, line, f"unexpected character {m.group(0)!r}")
        else:
            yield kind, m.group(0), line


class _Parser:
    def __init__(self, tokens: Iterator[Token], source: str) -> None:
        self._tokens = tokens
        self._source = source
        self._peeked: Token | None = None
        self._line = 1

    def _next(self) -> Token | None:
        if self._peeked is not None:
            tok, self._peeked = self._peeked, None
        else:
            tok = next(self._tokens, None)
        if tok is not None:
            self._line = tok[2]
        return tok

    def _peek(self) -> Token | None:
        if self._peeked is None:
            self._peeked = next(self._tokens, None)
        return self._peeked

    def _error(self, reason: str, line: int | None = None) -> MalformedRecord:
        return MalformedRecord(self._source, line if line is not None else self._line, reason)

    def parse_body(self, *, closing: bool, line: int = 1) -> Node:
        node = Node(line=line)
        while True:
            tok = self._next()
            if tok is None:
                if closing:
                    raise self._error(f"missing '}}' for block opened on line {line}")
                return node
            kind, value, tok_line = tok
            if kind == "op":
                if value == "}":
                    if closing:
                        return node
                    raise self._error("unmatched '}'", tok_line)
                if value == "{":
                    node.entries.append((None, self.parse_body(closing=True, line=tok_line), tok_line))
                    continue
                raise self._error(f"unexpected operator {value!r}", tok_line)

            nxt = self._peek()
            if nxt is not None and nxt[0] == "op" and nxt[1] not in "{}":
                self._next()
                node.entries.append((value, self.parse_value(), tok_line))
            elif kind == "word" and nxt is not None and nxt[1] == "{":
                node.entries.append((None, self.parse_value(first=tok), tok_line))
            else:
                node.entries.append((None, value, tok_line))

    def parse_value(self, first: Token | None = None) -> Value:
        tok = first if first is not None else self._next()
        if tok is None:
            raise self._error("expected a value after operator")
        kind, value, tok_line = tok
        if kind == "op":
            if value == "{":
                return self.parse_body(closing=True, line=tok_line)
            raise self._error(f"expected a value, found {value!r}", tok_line)
        nxt = self._peek()
        if kind == "word" and nxt is not None and nxt[1] == "{":
            # Tagged block such as ``rgb { 1 2 3 }``.
            self._next()
            block = self.parse_body(closing=True, line=nxt[2])
            block.tag = value
            return block
        return value


def parse_text(text: str, source: str = "<text>") -> Node:
    return _Parser(_tokenize(text, source), source).parse_body(closing=False)


def find_section(text: str, key: str, source: str = "<text>") -> Node | None:
    """Parse only the top-level ``key={...}`` block of a large document.

    Top-level keys of a text save start at column 0, so the block can be
    located with a multiline regex and tokenized lazily up to its closing brace.
    """
    m = re.search(rf"^{re.escape(key)}[ \t]*=[ \t\r\n]*\{{", text, flags=re.MULTILINE)
    if m is None:
        return None
    brace = m.end() - 1
    line = text.count("\n", 0, brace) + 1
    parser = _Parser(_tokenize(text, source, pos=brace, line=line), source)
    value = parser.parse_value()
    if not isinstance(value, Node):
        raise MalformedRecord(source, line, f"'{key}' is not a block")
    return value


def as_int(value: Value | None, *, source: str, line: int | None, what: str) -> int:
    if not isinstance(value, str):
        raise MalformedRecord(source, line, f"{what} must be an integer, found {value!r}")
    try:
        return int(value)
    except ValueError:
        raise MalformedRecord(source, line, f"{what} must be an integer, found {value!r}") from None


def as_int_list(value: Value | None, *, source: str, line: int | None, what: str) -> List[int]:
    if not isinstance(value, Node):
        raise MalformedRecord(source, line, f"{what} must be a block of integers")
    return [as_int(item, source=source, line=value.line, what=what) for item in value.values()]
