"""
Tokenizer for the subset of ZON (Zig Object Notation) used by build.zig.zon.

String literals are matched as whole tokens before comments are considered,
so a ``//`` inside a string (``"https://..."``) never starts a comment.
"""

import re
from dataclasses import dataclass
from typing import Iterator, List


class ZonSyntaxError(ValueError):
    """Raised when a manifest cannot be tokenized or parsed."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at line {line}, column {column}")
        self.message = message
        self.line = line
        self.column = column


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    line: int
    column: int


# order matters: multiline strings and comments before anything that could
# match their leading characters
_TOKEN_SPEC = [
    ("MULTILINE", r"\\\\[^\n]*(?:\n[ \t]*\\\\[^\n]*)*"),
    ("COMMENT", r"//[^\n]*"),
    ("NEWLINE", r"\n"),
    ("SKIP", r"[ \t\r\f\v]+"),
    ("LBRACE", r"\.[ \t]*\{"),
    ("QUOTED_FIELD", r'\.@"(?:[^"\\\n]|\\.)*"'),
    ("FIELD", r"\.[A-Za-z_][A-Za-z0-9_]*"),
    ("STRING", r'"(?:[^"\\\n]|\\.)*"'),
    ("NUMBER", r"-?(?:0x[0-9A-Fa-f_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*(?:\.[0-9_]+)?(?:[eE][+-]?[0-9]+)?)"),
    ("IDENT", r"[A-Za-z_][A-Za-z0-9_]*"),
    ("RBRACE", r"\}"),
    ("COMMA", r","),
    ("EQUALS", r"="),
    ("MISMATCH", r"."),
]

_MASTER = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_ESCAPE = re.compile(r"(?P<bytes>(?:\\x[0-9A-Fa-f]{2})+)|\\u\{(?P<codepoint>[0-9A-Fa-f]+)\}|\\(?P<simple>.)")
_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "'": "'", '"': '"'}


def _decode_bytes(run: str) -> str:
    # consecutive \xNN escapes spell UTF-8 bytes
    data = bytes.fromhex(run.replace("\\x", ""))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def decode_string(body: str) -> str:
    """Decode Zig escape sequences in the body of a string literal."""

    def replace(match: re.Match) -> str:
        if match.group("bytes") is not None:
            return _decode_bytes(match.group("bytes"))
        if match.group("codepoint") is not None:
            return chr(int(match.group("codepoint"), 16))
        simple = match.group("simple")
        if simple in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[simple]
        # unknown escapes are kept verbatim
        return match.group(0)

    return _ESCAPE.sub(replace, body)


def _multiline_value(raw: str) -> str:
    lines = []
    for line in raw.split("\n"):
        line = line.lstrip(" \t")
        lines.append(line[2:])
    return "\n".join(lines)


def tokenize(text: str) -> Iterator[Token]:
    line = 1
    line_start = 0

    for match in _MASTER.finditer(text):
        kind = match.lastgroup
        raw = match.group()
        column = match.start() - line_start + 1

        if kind == "NEWLINE":
            line += 1
            line_start = match.end()
            continue
        if kind in ("SKIP", "COMMENT"):
            continue
        if kind == "MISMATCH":
            raise ZonSyntaxError(f"unexpected character {raw!r}", line, column)

        if kind == "MULTILINE":
            token = Token("STRING", _multiline_value(raw), line, column)
            newlines = raw.count("\n")
            if newlines:
                line += newlines
                line_start = match.start() + raw.rfind("\n") + 1
            yield token
            continue

        if kind == "STRING":
            yield Token("STRING", decode_string(raw[1:-1]), line, column)
        elif kind == "QUOTED_FIELD":
            yield Token("FIELD", decode_string(raw[3:-1]), line, column)
        elif kind == "FIELD":
            yield Token("FIELD", raw[1:], line, column)
        else:
            yield Token(kind, raw, line, column)

    yield Token("EOF", "", line, len(text) - line_start + 1)


def tokenize_all(text: str) -> List[Token]:
    return list(tokenize(text))
