"""
Recursive-descent parser for build.zig.zon manifests.

Produces plain Python values (dict / list / str / int / float / bool / None)
that ``json.dumps`` can serialize directly.

Grammar subset::

    value    := literal | STRING | NUMBER | IDENT | FIELD   (enum literal)
    literal  := '.{' [ entries ] '}'
    entries  := field_assignment (',' field_assignment)* [',']
              | value (',' value)* [',']
    field_assignment := FIELD '=' value
"""

import json
from typing import Any, Dict, List, Optional

from ingest.zon.tokenizer import Token, ZonSyntaxError, tokenize_all

# fields whose literal is always a list of strings
ARRAY_FIELDS = frozenset({"paths"})

_IDENT_VALUES = {"true": True, "false": False, "null": None}


class ZonParser:
    def __init__(self, text: str):
        self.tokens: List[Token] = tokenize_all(text)
        self.pos = 0

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.peek()
        if token.kind != "EOF":
            self.pos += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.advance()
        if token.kind != kind:
            raise self.error(f"expected {kind}, got {token.kind}", token)
        return token

    @staticmethod
    def error(message: str, token: Token) -> ZonSyntaxError:
        return ZonSyntaxError(message, token.line, token.column)

    def parse_document(self) -> Any:
        value = self.parse_value()
        trailing = self.peek()
        if trailing.kind != "EOF":
            raise self.error(f"unexpected {trailing.kind} after document", trailing)
        return value

    def parse_value(self, key: Optional[str] = None) -> Any:
        token = self.peek()

        if token.kind == "LBRACE":
            return self.parse_literal(key)

        self.advance()
        if token.kind == "STRING":
            return token.value
        if token.kind == "NUMBER":
            return _parse_number(token)
        if token.kind == "FIELD":
            # enum literal, e.g. `.name = .zap`
            return token.value
        if token.kind == "IDENT" and token.value in _IDENT_VALUES:
            return _IDENT_VALUES[token.value]

        raise self.error(f"unexpected {token.kind} {token.value!r}", token)

    def parse_literal(self, key: Optional[str]) -> Any:
        self.expect("LBRACE")

        if self.peek().kind == "RBRACE":
            self.advance()
            return _empty_literal(key)

        if self.peek().kind == "FIELD" and self.peek(1).kind == "EQUALS":
            return self.parse_struct()

        items = self.parse_tuple()
        if items == [""]:
            return _empty_literal(key)
        return items

    def parse_struct(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        while True:
            name = self.expect("FIELD").value
            self.expect("EQUALS")
            fields[name] = self.parse_value(key=name)
            if not self._consume_separator():
                break
            if self.peek().kind == "RBRACE":
                self.advance()
                break
        return fields

    def parse_tuple(self) -> List[Any]:
        items: List[Any] = []
        while True:
            items.append(self.parse_value())
            if not self._consume_separator():
                break
            if self.peek().kind == "RBRACE":
                self.advance()
                break
        return items

    def _consume_separator(self) -> bool:
        """Consume ',' (True: more entries may follow) or '}' (False: literal closed)."""
        token = self.advance()
        if token.kind == "COMMA":
            return True
        if token.kind == "RBRACE":
            return False
        raise self.error(f"expected ',' or '}}', got {token.kind}", token)


def _empty_literal(key: Optional[str]) -> Any:
    return [] if key in ARRAY_FIELDS else {}


def _parse_number(token: Token) -> Any:
    text = token.value.replace("_", "")
    digits = text.lstrip("-")
    if digits[:2].lower() in ("0x", "0o", "0b"):
        return int(text, 0)
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


def parse_zon(text: str) -> Any:
    """Parse manifest text into Python values. Raises ZonSyntaxError."""
    return ZonParser(text).parse_document()


def zon_to_json(text: str) -> str:
    """Translate manifest text into a string accepted by ``json.loads``."""
    return json.dumps(parse_zon(text), ensure_ascii=False)
