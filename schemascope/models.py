"""Schema model produced by introspection."""

from datetime import datetime
from typing import Optional, List
from dataclasses import dataclass, field

TABLE_TYPE_BASE = "BASE TABLE"
TABLE_TYPE_VIEW = "VIEW"

CONSTRAINT_PRIMARY_KEY = "PRIMARY KEY"
CONSTRAINT_FOREIGN_KEY = "FOREIGN KEY"
CONSTRAINT_UNIQUE = "UNIQUE"
CONSTRAINT_CHECK = "CHECK"


@dataclass
class Column:
    """Represents a table column."""
    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None
    comment: Optional[str] = None
    extra_def: Optional[str] = None


@dataclass
class Index:
    """Represents an index, normalized across engines."""
    name: str
    definition: str
    table: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    primary: bool = False
    comment: Optional[str] = None


@dataclass
class Constraint:
    """Represents a table constraint.

    Foreign keys also carry the referenced table and columns as reported
    by the catalog; whether that table exists in the scan is decided later
    when relations are resolved.
    """
    name: str
    type: str
    definition: str
    table: str
    columns: List[str] = field(default_factory=list)
    referenced_table: Optional[str] = None
    referenced_columns: List[str] = field(default_factory=list)

    @property
    def is_foreign_key(self) -> bool:
        return self.type == CONSTRAINT_FOREIGN_KEY


@dataclass
class Trigger:
    """Represents a trigger."""
    name: str
    timing: str
    event: str
    definition: str


@dataclass
class Relation:
    """A foreign-key reference from one table to another.

    ``parent_table`` is only set when ``referenced_table`` was found in
    the same scan. ``None`` marks an unresolved reference.
    """
    table: str
    columns: List[str]
    referenced_table: str
    referenced_columns: List[str]
    constraint_name: str
    definition: str
    parent_table: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.parent_table is not None


@dataclass
class TableInfo:
    """A table or view found by the catalog scan."""
    name: str
    type: str
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    definition: str = ""


@dataclass
class Table(TableInfo):
    """A fully analyzed table."""
    columns: List[Column] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)
    constraints: List[Constraint] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    referenced_tables: List[str] = field(default_factory=list)

    @classmethod
    def from_info(cls, info: TableInfo) -> "Table":
        return cls(
            name=info.name,
            type=info.type,
            comment=info.comment,
            created_at=info.created_at,
            definition=info.definition,
        )

    def find_column(self, name: str) -> Optional[Column]:
        """Find a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def unresolved_relations(self) -> List[Relation]:
        """Relations whose referenced table was not found in the scan."""
        return [r for r in self.relations if not r.resolved]


@dataclass
class DriverInfo:
    """Engine identity and the capabilities derived from its version."""
    name: str
    database_version: str
    supports_generated_columns: bool = False
    supports_check_constraints: bool = False
    concurrent_safe: bool = False


@dataclass
class Schema:
    """A named collection of tables.

    For MySQL and MariaDB the schema is the database. For PostgreSQL it is
    a namespace inside a database. The name cannot be changed once set.
    """
    name: str
    tables: List[Table] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    driver: Optional[DriverInfo] = None

    def __setattr__(self, key, value):
        if key == "name" and getattr(self, "name", None):
            raise AttributeError(f"Schema name is already set to '{self.name}'")
        super().__setattr__(key, value)

    def find_table(self, name: str) -> Optional[Table]:
        """Find a table by name."""
        for table in self.tables:
            if table.name == name:
                return table
        return None
