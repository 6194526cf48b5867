"""DBML parser: converts schema-definition text into a Schema plus diagnostics.

Malformed input never raises. Every problem becomes a Diagnostic and the
parser resumes at the next line or top-level construct.
"""

import logging
import re
from functools import lru_cache
from typing import NamedTuple, Optional, Union

from .ids import IdFactory, random_id
from .models import (
    Column,
    Diagnostic,
    Relation,
    RelationEndpoint,
    RelationType,
    Schema,
    Severity,
    Table,
)

logger = logging.getLogger(__name__)

INLINE_SPACE = " \t\r"
QUOTES = "\"'`"
BARE_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
ALIAS_KEYWORD = re.compile(r"as\b")

# Blocks that are recognized but not modeled
SKIPPED_BLOCKS = ("TableGroup", "Enum", "Project")

PRIMARY_KEY_WORDS = {"pk", "primary", "primarykey"}
INCREMENT_WORDS = {"increment", "autoincrement"}

REF_SYMBOLS = {
    "-": RelationType.ONE_TO_ONE,
    "<": RelationType.ONE_TO_MANY,
    ">": RelationType.MANY_TO_ONE,
    "<>": RelationType.MANY_TO_MANY,
}

# Returned for composite endpoints such as a.(x, y), which are not modeled
COMPOSITE_ENDPOINT = ("(", "(")


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str):
    return re.compile(rf"{re.escape(keyword)}\b", re.IGNORECASE)


class ParseResult(NamedTuple):
    schema: Optional[Schema]
    diagnostics: list[Diagnostic]


# A reference waiting for all tables to be known: endpoints are either
# already-resolved ids or (table, column) names as written in the text
class _PendingRef(NamedTuple):
    name: Optional[str]
    source: Union[RelationEndpoint, tuple[str, str]]
    target: tuple[str, str]
    type: RelationType


class DBMLParser:
    """Stateful cursor over one input; all state is reset by parse()."""

    def __init__(self, id_factory: Optional[IdFactory] = None):
        self.id_factory = id_factory or random_id
        self._reset("")

    def _reset(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.diagnostics: list[Diagnostic] = []
        self._pending_refs: list[_PendingRef] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, text: str) -> ParseResult:
        self._reset(text or "")

        if not text or not text.strip():
            return ParseResult(None, [Diagnostic(line=1, column=1, message="Empty input")])

        try:
            schema = self._parse_schema()
        except Exception as exc:
            logger.exception("Unexpected failure while parsing DBML")
            self._error(f"Parse error: {exc}")
            return ParseResult(None, self.diagnostics)

        logger.debug(
            "Parsed %d tables and %d relations with %d diagnostics",
            len(schema.tables), len(schema.relations), len(self.diagnostics),
        )
        return ParseResult(schema, self.diagnostics)

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def _parse_schema(self) -> Schema:
        schema = Schema()

        while True:
            self._skip_whitespace()
            if self._at_end():
                break

            if self._match_keyword("Table"):
                table = self._parse_table()
                if table is not None:
                    schema.tables.append(table)
            elif self._match_keyword("Ref"):
                self._parse_ref_statement()
            elif any(self._match_keyword(keyword) for keyword in SKIPPED_BLOCKS):
                logger.debug("Skipping unmodeled block at line %d", self.line)
                self._skip_block()
            else:
                self._skip_line()

        schema.relations.extend(self._resolve_relations(schema.tables))
        return schema

    # ------------------------------------------------------------------
    # Tables and columns
    # ------------------------------------------------------------------

    def _parse_table(self) -> Optional[Table]:
        self._advance(len("Table"))
        self._skip_whitespace()

        name = self._parse_identifier()
        if not name:
            self._error("Expected table name")
            return None

        alias = None
        self._skip_whitespace()
        if ALIAS_KEYWORD.match(self.text, self.pos):
            self._advance(2)
            self._skip_whitespace()
            alias = self._parse_identifier()
            if not alias:
                self._error(f'Expected alias after "as" for table "{name}"')
                return None
            self._skip_whitespace()

        settings = {}
        if self._peek() == "[":
            settings = self._parse_table_settings()
            self._skip_whitespace()

        if self._peek() != "{":
            self._error('Expected "{" after table name')
            return None
        self._advance()

        table = Table(
            id=self._new_id("table"),
            name=name,
            alias=alias,
            color=settings.get("headercolor"),
            note=settings.get("note"),
        )
        table_refs: list[_PendingRef] = []

        while True:
            self._skip_whitespace()
            if self._at_end() or self._peek() == "}":
                break

            # Stray "/" or "#" noise
            if self._peek() in "/#":
                self._skip_line()
                continue

            self._parse_table_item(table, table_refs)

        if self._peek() != "}":
            self._error('Expected "}" to close table definition')
            return None
        self._advance()

        self._pending_refs.extend(table_refs)
        return table

    def _parse_table_item(self, table: Table, table_refs: list):
        word = self._lookahead_word().lower()
        if word in ("indexes", "note"):
            after = self._peek_past_word(word)
            if after == "{":
                # Index and note blocks are consumed but not modeled
                self._skip_block()
                return
            if word == "note" and after == ":":
                self._advance(len(word))
                self._skip_inline_whitespace()
                self._advance()
                self._skip_inline_whitespace()
                table.note = self._parse_value()
                self._discard_rest_of_line()
                return

        column = self._parse_column(table, table_refs)
        if column is not None:
            table.columns.append(column)

    def _parse_column(self, table: Table, table_refs: list) -> Optional[Column]:
        name = self._parse_identifier()
        if not name:
            self._error("Expected column name")
            self._discard_rest_of_line()
            return None

        self._skip_inline_whitespace()
        column_type = self._parse_type()
        if not column_type:
            self._error(f'Expected type for column "{name}"')
            self._discard_rest_of_line()
            return None

        column = Column(id=self._new_id("col"), name=name, type=column_type)

        self._skip_inline_whitespace()
        if self._peek() == "[":
            self._parse_column_settings(column, table, table_refs)

        self._discard_rest_of_line()
        return column

    def _parse_type(self) -> str:
        if self._peek() == '"':
            return self._read_quoted()

        start = self.pos
        while not self._at_end() and self._peek() not in " \t\r\n[}(":
            self._advance()
        column_type = self.text[start:self.pos]
        if not column_type:
            return ""

        # Parameter such as varchar(255) or decimal(10, 2), kept verbatim
        self._skip_inline_whitespace()
        if self._peek() == "(":
            param_start = self.pos
            depth = 0
            while not self._at_end() and self._peek() != "\n":
                ch = self._peek()
                self._advance()
                if ch == "(":
                    depth += 1
                elif ch == ")":
                    depth -= 1
                    if depth == 0:
                        break
            column_type += self.text[param_start:self.pos]

        return column_type

    def _parse_column_settings(self, column: Column, table: Table, table_refs: list):
        constraints = column.constraints
        self._advance()

        while True:
            self._skip_inline_whitespace()
            if self._at_end() or self._peek() in "]\n":
                break
            if self._peek() == ",":
                self._advance()
                continue

            word = self._parse_bare_word()
            if not word:
                self._skip_setting()
                continue

            key = word.lower()
            self._skip_inline_whitespace()

            if key in PRIMARY_KEY_WORDS:
                constraints.pk = True
                if key == "primary" and self._lookahead_word().lower() == "key":
                    self._advance(3)
            elif key == "not":
                if self._parse_bare_word().lower() == "null":
                    constraints.not_null = True
            elif key == "null":
                constraints.nullable = True
            elif key == "unique":
                constraints.unique = True
            elif key in INCREMENT_WORDS:
                constraints.increment = True
            elif key == "default" and self._peek() == ":":
                self._advance()
                self._skip_inline_whitespace()
                column.default_value = self._parse_value()
            elif key == "note" and self._peek() == ":":
                self._advance()
                self._skip_inline_whitespace()
                column.note = self._parse_value()
            elif key == "ref":
                constraints.fk = True
                self._parse_inline_ref(table, column, table_refs)
                # Whatever follows the reference inside the brackets is dropped
                self._skip_until("]\n")
            else:
                self._skip_setting()

        if self._peek() == "]":
            self._advance()

    def _parse_table_settings(self) -> dict:
        settings = {}
        self._advance()

        while True:
            self._skip_inline_whitespace()
            if self._at_end() or self._peek() in "]\n":
                break
            if self._peek() == ",":
                self._advance()
                continue

            key = self._parse_bare_word().lower()
            self._skip_inline_whitespace()
            if key in ("headercolor", "note") and self._peek() == ":":
                self._advance()
                self._skip_inline_whitespace()
                settings[key] = self._parse_value()
            else:
                self._skip_setting()

        if self._peek() == "]":
            self._advance()
        return settings

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _parse_inline_ref(self, table: Table, column: Column, table_refs: list):
        if self._peek() == ":":
            self._advance()
            self._skip_inline_whitespace()

        ref_type = self._parse_ref_symbol()
        if ref_type is None:
            return
        self._skip_inline_whitespace()

        target = self._parse_endpoint()
        if target is None or target is COMPOSITE_ENDPOINT:
            return

        source = RelationEndpoint(table_id=table.id, column_id=column.id)
        table_refs.append(_PendingRef(None, source, target, ref_type))

    def _parse_ref_statement(self):
        self._advance(len("Ref"))
        self._skip_inline_whitespace()

        name = None
        if self._peek() and self._peek() not in ":{":
            name = self._parse_identifier() or None
            self._skip_inline_whitespace()

        if self._peek() == ":":
            self._advance()
            self._parse_ref_line(name)
        elif self._peek() == "{":
            self._advance()
            while True:
                self._skip_whitespace()
                if self._at_end():
                    self._error('Expected "}" to close Ref definition')
                    return
                if self._peek() == "}":
                    self._advance()
                    return
                self._parse_ref_line(name)
        else:
            self._error('Expected ":" or "{" after Ref')
            self._skip_line()

    def _parse_ref_line(self, name: Optional[str]):
        self._skip_inline_whitespace()

        source = self._parse_endpoint()
        if source is COMPOSITE_ENDPOINT:
            self._discard_rest_of_line()
            return
        if source is None:
            self._error("Expected relation endpoint")
            self._discard_rest_of_line()
            return

        self._skip_inline_whitespace()
        ref_type = self._parse_ref_symbol()
        if ref_type is None:
            self._error('Expected relation symbol ("<", ">", "-" or "<>")')
            self._discard_rest_of_line()
            return

        self._skip_inline_whitespace()
        target = self._parse_endpoint()
        if target is COMPOSITE_ENDPOINT:
            self._discard_rest_of_line()
            return
        if target is None:
            self._error("Expected relation endpoint")
            self._discard_rest_of_line()
            return

        self._pending_refs.append(_PendingRef(name, source, target, ref_type))
        self._discard_rest_of_line()

    def _parse_ref_symbol(self) -> Optional[RelationType]:
        if self.text.startswith("<>", self.pos):
            self._advance(2)
            return REF_SYMBOLS["<>"]
        symbol = self._peek()
        if symbol and symbol in REF_SYMBOLS:
            self._advance()
            return REF_SYMBOLS[symbol]
        return None

    def _parse_endpoint(self) -> Optional[tuple[str, str]]:
        """Read table.column (or schema.table.column) and keep the last two parts"""
        if self._peek() == "(":
            return COMPOSITE_ENDPOINT

        parts = []
        part = self._parse_identifier()
        if not part:
            return None
        parts.append(part)

        while self._peek() == ".":
            self._advance()
            if self._peek() == "(":
                return COMPOSITE_ENDPOINT
            part = self._parse_identifier()
            if not part:
                return None
            parts.append(part)

        if len(parts) < 2:
            return None
        return parts[-2], parts[-1]

    def _resolve_relations(self, tables: list[Table]) -> list[Relation]:
        tables_by_ref = {}
        for table in tables:
            tables_by_ref.setdefault(table.name, table)
        for table in tables:
            if table.alias:
                tables_by_ref.setdefault(table.alias, table)
        for table in tables:
            tables_by_ref.setdefault(table.id, table)

        relations = []
        for pending in self._pending_refs:
            relations.append(Relation(
                id=self._new_id("rel"),
                name=pending.name,
                from_endpoint=self._resolve_endpoint(pending.source, tables_by_ref),
                to_endpoint=self._resolve_endpoint(pending.target, tables_by_ref),
                type=pending.type,
            ))
        return relations

    @staticmethod
    def _resolve_endpoint(ref, tables_by_ref: dict) -> RelationEndpoint:
        if isinstance(ref, RelationEndpoint):
            return ref

        table_ref, column_ref = ref
        table = tables_by_ref.get(table_ref)
        if table is None:
            # Dangling references keep the names as written
            return RelationEndpoint(table_id=table_ref, column_id=column_ref)

        column = next((c for c in table.columns if c.name == column_ref), None)
        if column is None:
            column = next((c for c in table.columns if c.id == column_ref), None)
        return RelationEndpoint(
            table_id=table.id,
            column_id=column.id if column else column_ref,
        )

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _parse_identifier(self) -> str:
        ch = self._peek()
        if ch == '"' or ch == "`":
            return self._read_quoted()
        return self._parse_bare_word()

    def _parse_bare_word(self) -> str:
        match = BARE_WORD.match(self.text, self.pos)
        if not match:
            return ""
        self._advance(len(match.group(0)))
        return match.group(0)

    def _read_quoted(self) -> str:
        """Read a quoted token and return its inner text.

        Single and double quotes honour backslash escapes, backticks do not.
        '''triple quoted''' strings may span lines. A 'single quoted' value
        spans lines only when its closing quote ends the value; the others
        stop at the end of the line when unterminated.
        """
        if self.text.startswith("'''", self.pos):
            self._advance(3)
            end = self.text.find("'''", self.pos)
            if end == -1:
                end = len(self.text)
            value = self.text[self.pos:end]
            self._advance(end - self.pos + 3)
            return value

        quote = self._peek()
        self._advance()
        chars = []
        while not self._at_end():
            ch = self._peek()
            if ch == quote:
                break
            if ch == "\n" and not (quote == "'" and self._value_closes_later()):
                break
            if ch == "\\" and quote != "`" and self._peek(1) not in ("", "\n"):
                self._advance()
                ch = self._peek()
            chars.append(ch)
            self._advance()

        if self._peek() == quote:
            self._advance()
        return "".join(chars)

    def _value_closes_later(self) -> bool:
        """Whether the next unescaped ' is followed by ",", "]" or a line end"""
        index = self.pos
        while index < len(self.text):
            ch = self.text[index]
            if ch == "\\":
                index += 2
                continue
            if ch == "'":
                index += 1
                while index < len(self.text) and self.text[index] in INLINE_SPACE:
                    index += 1
                return index >= len(self.text) or self.text[index] in ",]\n"
            index += 1
        return False

    def _parse_value(self) -> str:
        """A setting value: quoted string, backtick expression, or bare word/number"""
        if self._peek() and self._peek() in QUOTES:
            return self._read_quoted()
        start = self.pos
        self._skip_until(",]\n")
        return self.text[start:self.pos].strip()

    # ------------------------------------------------------------------
    # Cursor helpers
    # ------------------------------------------------------------------

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def _advance(self, count: int = 1):
        for _ in range(count):
            if self.pos >= len(self.text):
                return
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _match_keyword(self, keyword: str) -> bool:
        return _keyword_pattern(keyword).match(self.text, self.pos) is not None

    def _lookahead_word(self) -> str:
        match = BARE_WORD.match(self.text, self.pos)
        return match.group(0) if match else ""

    def _peek_past_word(self, word: str) -> str:
        index = self.pos + len(word)
        while index < len(self.text) and self.text[index] in INLINE_SPACE:
            index += 1
        return self.text[index] if index < len(self.text) else ""

    def _skip_inline_whitespace(self):
        while not self._at_end() and self._peek() in INLINE_SPACE:
            self._advance()

    def _skip_whitespace(self):
        """Skip blanks, newlines and //, /* */ and # comments"""
        while not self._at_end():
            ch = self._peek()
            if ch in INLINE_SPACE or ch == "\n":
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                self._skip_line()
            elif ch == "/" and self._peek(1) == "*":
                self._skip_block_comment()
            elif ch == "#":
                self._skip_line()
            else:
                break

    def _skip_block_comment(self):
        self._advance(2)
        end = self.text.find("*/", self.pos)
        if end == -1:
            end = len(self.text)
        self._advance(end - self.pos + 2)

    def _skip_line(self):
        while not self._at_end() and self._peek() != "\n":
            self._advance()
        self._advance()

    def _skip_until(self, stops: str):
        while not self._at_end() and self._peek() not in stops:
            self._advance()

    def _skip_setting(self):
        """Skip one unrecognized setting up to the next "," or "]" on the line"""
        while not self._at_end() and self._peek() not in ",]\n":
            if self._peek() in QUOTES:
                self._read_quoted()
            else:
                self._advance()

    def _discard_rest_of_line(self):
        """Drop the remainder of a line, stopping before a "}" that closes a block"""
        while not self._at_end():
            ch = self._peek()
            if ch == "\n":
                self._advance()
                return
            if ch == "}":
                return
            if ch == "#" or (ch == "/" and self._peek(1) == "/"):
                self._skip_line()
                return
            if ch == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue
            self._advance()

    def _skip_block(self):
        """Consume a header and its balanced { ... } body"""
        while not self._at_end() and self._peek() not in "{\n":
            if self._peek() in QUOTES:
                self._read_quoted()
            else:
                self._advance()

        if self._peek() == "\n":
            self._skip_whitespace()
        if self._peek() != "{":
            return

        depth = 0
        while not self._at_end():
            ch = self._peek()
            if ch in QUOTES:
                self._read_quoted()
                continue
            if ch == "#" or (ch == "/" and self._peek(1) == "/"):
                self._skip_line()
                continue
            if ch == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue
            self._advance()
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return

    # ------------------------------------------------------------------
    # Diagnostics and ids
    # ------------------------------------------------------------------

    def _error(self, message: str, severity: Severity = Severity.ERROR):
        self.diagnostics.append(Diagnostic(
            line=self.line,
            column=self.column,
            message=message,
            severity=severity,
        ))

    def _new_id(self, prefix: str) -> str:
        return self.id_factory(prefix)


def parse_dbml(text: str, id_factory: Optional[IdFactory] = None) -> ParseResult:
    """Parse DBML text with a fresh parser"""
    return DBMLParser(id_factory).parse(text)
