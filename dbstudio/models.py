from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RelationType(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# Canvas coordinates of a table
class Position(BaseModel):
    x: float = 0
    y: float = 0


# Sparse flag set: None means "not set", never "false"
class ColumnConstraints(BaseModel):
    pk: Optional[bool] = None
    primary_key: Optional[bool] = None  # legacy spelling of pk
    fk: Optional[bool] = None
    foreign_key: Optional[bool] = None  # legacy spelling of fk
    unique: Optional[bool] = None
    not_null: Optional[bool] = None
    nullable: Optional[bool] = None
    increment: Optional[bool] = None

    @property
    def is_primary_key(self) -> bool:
        return bool(self.pk or self.primary_key)

    @property
    def is_foreign_key(self) -> bool:
        return bool(self.fk or self.foreign_key)


# A single column in a table
class Column(BaseModel):
    id: str
    name: str
    type: str
    constraints: ColumnConstraints = Field(default_factory=ColumnConstraints)
    default_value: Optional[str] = None
    note: Optional[str] = None


class IndexColumn(BaseModel):
    name: str
    sort: Optional[Literal["asc", "desc"]] = None


class Index(BaseModel):
    id: str
    name: Optional[str] = None
    columns: list[IndexColumn] = Field(default_factory=list)
    unique: Optional[bool] = None
    pk: Optional[bool] = None
    note: Optional[str] = None


# A table
class Table(BaseModel):
    id: str
    name: str
    alias: Optional[str] = None
    note: Optional[str] = None
    columns: list[Column] = Field(default_factory=list)
    indexes: list[Index] = Field(default_factory=list)
    position: Position = Field(default_factory=Position)
    color: Optional[str] = None


# One side of a relation, by table and column id
class RelationEndpoint(BaseModel):
    table_id: str
    column_id: str


# A relationship between two columns; from/to order decides the emitted symbol
class Relation(BaseModel):
    id: str
    name: Optional[str] = None
    from_endpoint: RelationEndpoint
    to_endpoint: RelationEndpoint
    type: RelationType
    note: Optional[str] = None


class TableGroup(BaseModel):
    id: str
    name: str
    table_ids: list[str] = Field(default_factory=list)
    color: Optional[str] = None
    note: Optional[str] = None


class EnumValue(BaseModel):
    name: str
    note: Optional[str] = None


class EnumType(BaseModel):
    id: str
    name: str
    values: list[EnumValue] = Field(default_factory=list)
    note: Optional[str] = None


# The full schema
class Schema(BaseModel):
    tables: list[Table] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
    table_groups: list[TableGroup] = Field(default_factory=list)
    enums: list[EnumType] = Field(default_factory=list)
    note: Optional[str] = None


# A parse-time defect at a 1-based line/column
class Diagnostic(BaseModel):
    line: int
    column: int
    message: str
    severity: Severity = Severity.ERROR
