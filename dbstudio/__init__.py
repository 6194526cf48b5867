from .generator import generate_dbml
from .ids import SequentialIds, random_id
from .models import (
    Column,
    ColumnConstraints,
    Diagnostic,
    EnumType,
    EnumValue,
    Index,
    IndexColumn,
    Position,
    Relation,
    RelationEndpoint,
    RelationType,
    Schema,
    Severity,
    Table,
    TableGroup,
)
from .parser import DBMLParser, ParseResult, parse_dbml

__version__ = "0.1.0"
