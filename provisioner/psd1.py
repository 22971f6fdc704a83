# provisioner/psd1.py
# -*- coding: utf-8 -*-
"""
Reader for PowerShell data files (.psd1).

Only the restricted language that data files allow is understood:
hashtables ``@{}``, arrays ``@()`` and comma lists, quoted strings,
numbers, ``$true``, ``$false`` and ``$null``. Hashtables become dicts
in source order; arrays become lists.
"""

import re
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

_TOKEN_SPEC = [
    ("BLOCK_COMMENT", r"<\#.*?\#>"),
    ("COMMENT", r"\#[^\n]*"),
    ("CONTINUATION", r"`\r?\n"),
    ("NEWLINE", r"\r?\n"),
    ("SKIP", r"[ \t\f\v]+"),
    ("HASH_OPEN", r"@\{"),
    ("ARRAY_OPEN", r"@\("),
    ("HASH_CLOSE", r"\}"),
    ("ARRAY_CLOSE", r"\)"),
    ("EQUALS", r"="),
    ("COMMA", r","),
    ("SEMI", r";"),
    ("SQ_STRING", r"'(?:[^']|'')*'"),
    ("DQ_STRING", r'"(?:[^"`]|`.|"")*"'),
    ("NUMBER", r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?(?![A-Za-z_])"),
    ("VARIABLE", r"\$[A-Za-z_][A-Za-z0-9_]*"),
    ("BAREWORD", r"[A-Za-z_][A-Za-z0-9_.\-]*"),
]
_TOKEN_RE = re.compile(
    "|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC),
    re.DOTALL,
)
_IGNORED = {"BLOCK_COMMENT", "COMMENT", "CONTINUATION", "SKIP"}

_DQ_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}

_CONSTANTS = {"$true": True, "$false": False, "$null": None}


class Psd1Error(ValueError):
    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} (line {line}, column {column})")
        self.line = line
        self.column = column


class _Token(NamedTuple):
    kind: str
    text: str
    line: int
    column: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    line = 1
    line_start = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise Psd1Error(
                f"Unexpected character {text[pos]!r}", line, pos - line_start + 1
            )
        kind = match.lastgroup or ""
        value = match.group()
        if kind not in _IGNORED:
            tokens.append(_Token(kind, value, line, pos - line_start + 1))
        newlines = value.count("\n")
        if newlines:
            line += newlines
            line_start = match.start() + value.rfind("\n") + 1
        pos = match.end()
    tokens.append(_Token("EOF", "", line, pos - line_start + 1))
    return tokens


def _unescape_double_quoted(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "`" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_DQ_ESCAPES.get(nxt, nxt))
            i += 2
        elif ch == '"' and body[i + 1 : i + 2] == '"':
            out.append('"')
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


class _Parser:
    def __init__(self, tokens: List[_Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> _Token:
        return self.tokens[self.pos]

    def advance(self) -> _Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def error(self, message: str, token: Optional[_Token] = None) -> Psd1Error:
        token = token or self.peek()
        return Psd1Error(message, token.line, token.column)

    def skip(self, *kinds: str) -> None:
        while self.peek().kind in kinds:
            self.advance()

    def parse_document(self) -> Any:
        self.skip("NEWLINE")
        if self.peek().kind == "EOF":
            raise self.error("Data file is empty")
        values = self.parse_value_list()
        self.skip("NEWLINE")
        if self.peek().kind != "EOF":
            raise self.error(f"Unexpected token {self.peek().text!r}")
        return values[0] if len(values) == 1 else values

    def parse_value_list(self) -> List[Any]:
        values = [self.parse_value()]
        while self.peek().kind == "COMMA":
            self.advance()
            self.skip("NEWLINE")
            values.append(self.parse_value())
        return values

    def parse_value(self) -> Any:
        token = self.peek()
        if token.kind == "HASH_OPEN":
            return self.parse_hashtable()
        if token.kind == "ARRAY_OPEN":
            return self.parse_array()
        self.advance()
        if token.kind == "SQ_STRING":
            return token.text[1:-1].replace("''", "'")
        if token.kind == "DQ_STRING":
            return _unescape_double_quoted(token.text[1:-1])
        if token.kind == "NUMBER":
            if re.fullmatch(r"[+-]?\d+", token.text):
                return int(token.text)
            return float(token.text)
        if token.kind == "VARIABLE":
            lowered = token.text.lower()
            if lowered in _CONSTANTS:
                return _CONSTANTS[lowered]
            raise self.error(
                f"Variable {token.text} is not allowed in a data file", token
            )
        raise self.error(f"Unexpected token {token.text!r}", token)

    def parse_key(self) -> str:
        token = self.advance()
        if token.kind == "BAREWORD":
            return token.text
        if token.kind == "SQ_STRING":
            return token.text[1:-1].replace("''", "'")
        if token.kind == "DQ_STRING":
            return _unescape_double_quoted(token.text[1:-1])
        if token.kind == "NUMBER":
            return token.text
        raise self.error(f"Expected a hashtable key, got {token.text!r}", token)

    def parse_hashtable(self) -> Dict[str, Any]:
        self.advance()
        result: Dict[str, Any] = {}
        seen = set()
        while True:
            self.skip("NEWLINE", "SEMI")
            if self.peek().kind == "HASH_CLOSE":
                self.advance()
                return result
            key_token = self.peek()
            key = self.parse_key()
            if key.lower() in seen:
                raise self.error(f"Duplicate key '{key}'", key_token)
            seen.add(key.lower())
            if self.peek().kind != "EQUALS":
                raise self.error(f"Expected '=' after key '{key}'")
            self.advance()
            self.skip("NEWLINE")
            values = self.parse_value_list()
            result[key] = values[0] if len(values) == 1 else values
            if self.peek().kind not in ("NEWLINE", "SEMI", "HASH_CLOSE"):
                raise self.error(f"Unexpected token {self.peek().text!r}")

    def parse_array(self) -> List[Any]:
        self.advance()
        items: List[Any] = []
        while True:
            self.skip("NEWLINE", "SEMI")
            if self.peek().kind == "ARRAY_CLOSE":
                self.advance()
                return items
            if self.peek().kind == "EOF":
                raise self.error("Unterminated array")
            items.extend(self.parse_value_list())
            if self.peek().kind == "EOF":
                raise self.error("Unterminated array")
            if self.peek().kind not in ("NEWLINE", "SEMI", "ARRAY_CLOSE"):
                raise self.error(f"Unexpected token {self.peek().text!r}")


def loads(text: str) -> Any:
    """Parse the text of a PowerShell data file.

    Raises:
        Psd1Error: The text is not a valid data file.
    """
    return _Parser(_tokenize(text)).parse_document()


def find_key(mapping: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Look up ``key`` case-insensitively, as PowerShell hashtables do."""
    lowered = key.lower()
    for candidate, value in mapping.items():
        if str(candidate).lower() == lowered:
            return value
    return default
