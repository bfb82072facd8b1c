from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

RelationKind = Literal["table", "view"]


class TableRow(BaseModel):
    table_schema: str
    table_name: str
    table_type: str

    @property
    def key(self) -> str:
        return f"{self.table_schema}.{self.table_name}"

    @property
    def kind(self) -> RelationKind:
        return "table" if self.table_type == "BASE TABLE" else "view"


class ColumnRow(BaseModel):
    table_schema: str
    table_name: str
    column_name: str
    ordinal_position: int
    data_type: str
    udt_schema: Optional[str] = None
    udt_name: Optional[str] = None
    is_nullable: bool = True
    column_default: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None

    @field_validator("is_nullable", mode="before")
    @classmethod
    def _yes_no(cls, v):
        # information_schema reports 'YES' / 'NO'
        if isinstance(v, str):
            return v.strip().upper() == "YES"
        return v


class EnumTypeRow(BaseModel):
    nspname: str
    typname: str
    enumlabel: str
    enumsortorder: float


class PrimaryKeyRow(BaseModel):
    table_schema: str
    table_name: str
    constraint_name: str
    column_name: str
    ordinal_position: int


class UniqueRow(BaseModel):
    table_schema: str
    table_name: str
    constraint_name: str
    column_name: str
    ordinal_position: int


class ForeignKeyRow(BaseModel):
    table_schema: str
    table_name: str
    column_name: str
    ordinal_position: int
    constraint_name: str
    ref_table_schema: str
    ref_table_name: str
    ref_column_name: Optional[str] = None


class IndexRow(BaseModel):
    schemaname: str
    tablename: str
    indexname: str
    indexdef: str


class SchemaSnapshot(BaseModel):
    """Raw catalog rows from one introspection round."""

    tables: List[TableRow] = Field(default_factory=list)
    columns: List[ColumnRow] = Field(default_factory=list)
    enums: List[EnumTypeRow] = Field(default_factory=list)
    primary_keys: List[PrimaryKeyRow] = Field(default_factory=list)
    uniques: List[UniqueRow] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyRow] = Field(default_factory=list)
    indexes: List[IndexRow] = Field(default_factory=list)


class KeyConstraint(BaseModel):
    name: str
    columns: List[str]


class ForeignKey(BaseModel):
    name: str
    columns: List[str]
    ref_schema: str
    ref_table: str
    ref_columns: List[str]


class TableRelation(BaseModel):
    kind: Literal["table"] = "table"
    schema_name: str
    name: str
    columns: List[ColumnRow] = Field(default_factory=list)
    primary_key: Optional[KeyConstraint] = None
    uniques: List[KeyConstraint] = Field(default_factory=list)
    fks: List[ForeignKey] = Field(default_factory=list)
    indexes: List[str] = Field(default_factory=list)


class ViewRelation(BaseModel):
    kind: Literal["view"] = "view"
    schema_name: str
    name: str
    columns: List[ColumnRow] = Field(default_factory=list)
    indexes: List[str] = Field(default_factory=list)


Relation = Annotated[Union[TableRelation, ViewRelation], Field(discriminator="kind")]


class SchemaDdl(BaseModel):
    ddl_by_relation: Dict[str, str] = Field(default_factory=dict)
    kind_by_relation: Dict[str, RelationKind] = Field(default_factory=dict)
