import logging
import re

from .models import Column, Relation, RelationType, Schema, Table, TableGroup

logger = logging.getLogger(__name__)

INDENT = "  "

# Ref symbol per relation type; anything else falls back to ">"
RELATION_SYMBOLS = {
    RelationType.ONE_TO_ONE: "-",
    RelationType.ONE_TO_MANY: "<",
    RelationType.MANY_TO_ONE: ">",
    RelationType.MANY_TO_MANY: "<>",
}
DEFAULT_SYMBOL = ">"

BARE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STRING_SPECIALS = re.compile(r"['\\]")


def escape_identifier(name: str) -> str:
    """Bare identifiers pass through, everything else is wrapped in backticks"""
    if BARE_IDENTIFIER.match(name):
        return name
    # Backticks inside the name are not escaped
    return f"`{name}`"


def escape_string(text: str) -> str:
    """Escape a value for a single-quoted string: ' -> \\' and \\ -> \\\\ in one pass"""
    return _STRING_SPECIALS.sub(lambda m: "\\" + m.group(0), text)


def column_to_dbml(column: Column) -> str:
    line = f"{INDENT}{escape_identifier(column.name)} {column.type}"

    # Fixed order, independent of how the flag set was built
    settings = []
    if column.constraints.is_primary_key:
        settings.append("pk")
    if column.constraints.not_null:
        settings.append("not null")
    if column.constraints.unique:
        settings.append("unique")
    if column.constraints.increment:
        settings.append("increment")
    if column.default_value is not None:
        settings.append(f"default: '{escape_string(column.default_value)}'")
    if column.note:
        settings.append(f"note: '{escape_string(column.note)}'")

    if settings:
        line += f" [{', '.join(settings)}]"
    return line


def table_to_dbml(table: Table) -> str:
    header = f"Table {escape_identifier(table.name)}"
    if table.alias:
        header += f" as {escape_identifier(table.alias)}"
    lines = [header + " {"]

    if table.note:
        lines.append(f"{INDENT}note: '{escape_string(table.note)}'")
        lines.append("")

    for column in table.columns:
        lines.append(column_to_dbml(column))

    lines.append("}")
    return "\n".join(lines)


def relation_to_dbml(relation: Relation) -> str:
    source = f"{relation.from_endpoint.table_id}.{relation.from_endpoint.column_id}"
    target = f"{relation.to_endpoint.table_id}.{relation.to_endpoint.column_id}"
    symbol = RELATION_SYMBOLS.get(relation.type, DEFAULT_SYMBOL)

    header = "Ref"
    if relation.name:
        header += f" {escape_identifier(relation.name)}"
    return f"{header} {{\n{INDENT}{source} {symbol} {target}\n}}"


def table_group_to_dbml(group: TableGroup) -> str:
    lines = [f"TableGroup {escape_identifier(group.name)} {{"]
    for table_id in group.table_ids:
        lines.append(f"{INDENT}{escape_identifier(table_id)}")
    lines.append("}")
    return "\n".join(lines)


def generate_dbml(schema: Schema) -> str:
    """Convert a schema to canonical DBML text. Never fails and never mutates the schema."""
    lines = []

    for table in schema.tables:
        lines.append(table_to_dbml(table))
        lines.append("")

    for relation in schema.relations:
        lines.append(relation_to_dbml(relation))

    for group in schema.table_groups:
        lines.append(table_group_to_dbml(group))
        lines.append("")

    logger.debug(
        "Generated DBML for %d tables, %d relations, %d groups",
        len(schema.tables), len(schema.relations), len(schema.table_groups),
    )
    return "\n".join(lines).strip()
