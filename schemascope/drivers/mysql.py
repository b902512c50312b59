"""MySQL driver."""

import logging
import re
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..models import (
    CONSTRAINT_CHECK,
    CONSTRAINT_FOREIGN_KEY,
    CONSTRAINT_PRIMARY_KEY,
    CONSTRAINT_UNIQUE,
    Column,
    Constraint,
    DriverInfo,
    Index,
    TableInfo,
    Trigger,
)
from .base import Driver, build_extra_def, convert_column_nullable, parse_version, split_list

logger = logging.getLogger(__name__)

_AUTO_INCREMENT_RE = re.compile(r" AUTO_INCREMENT=\d+")

TABLES_SQL = """
    SELECT table_name, table_type, table_comment, create_time
    FROM information_schema.tables
    WHERE table_schema = %s AND (table_name LIKE %s OR table_comment LIKE %s)
    ORDER BY table_name
"""

VIEW_DEFINITION_SQL = """
    SELECT view_definition
    FROM information_schema.views
    WHERE table_schema = %s AND table_name = %s
"""

GENERATED_COLUMNS_SQL = """
    SELECT column_name, column_default, is_nullable, column_type, column_comment, extra, generation_expression
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""

COLUMNS_SQL = """
    SELECT column_name, column_default, is_nullable, column_type, column_comment, extra
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""

INDEXES_SQL = """
    SELECT
        s.index_name,
        s.non_unique,
        s.index_type,
        GROUP_CONCAT(s.column_name ORDER BY s.seq_in_index SEPARATOR ', ') AS column_names,
        MAX(s.index_comment) AS index_comment
    FROM information_schema.statistics AS s
    WHERE s.table_schema = %s AND s.table_name = %s
    GROUP BY s.index_name, s.non_unique, s.index_type
    ORDER BY s.index_name
"""

KEY_CONSTRAINTS_SQL = """
    SELECT
        tc.constraint_name,
        tc.constraint_type,
        GROUP_CONCAT(kcu.column_name ORDER BY kcu.ordinal_position SEPARATOR ', ') AS column_names,
        MAX(kcu.referenced_table_name) AS referenced_table_name,
        GROUP_CONCAT(kcu.referenced_column_name ORDER BY kcu.ordinal_position SEPARATOR ', ') AS referenced_column_names,
        MAX(rc.update_rule) AS update_rule,
        MAX(rc.delete_rule) AS delete_rule
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON kcu.constraint_schema = tc.constraint_schema
        AND kcu.table_name = tc.table_name
        AND kcu.constraint_name = tc.constraint_name
    LEFT JOIN information_schema.referential_constraints AS rc
        ON rc.constraint_schema = tc.constraint_schema
        AND rc.table_name = tc.table_name
        AND rc.constraint_name = tc.constraint_name
    WHERE tc.table_schema = %s AND tc.table_name = %s
    GROUP BY tc.constraint_name, tc.constraint_type
    ORDER BY tc.constraint_name
"""

CHECK_CONSTRAINTS_SQL = """
    SELECT cc.constraint_name, cc.check_clause
    FROM information_schema.check_constraints AS cc
    JOIN information_schema.table_constraints AS tc
        ON tc.constraint_schema = cc.constraint_schema
        AND tc.constraint_name = cc.constraint_name
    WHERE tc.table_schema = %s AND tc.table_name = %s AND tc.constraint_type = 'CHECK'
    ORDER BY cc.constraint_name
"""

TRIGGERS_SQL = """
    SELECT trigger_name, action_timing, event_manipulation, action_orientation, action_statement
    FROM information_schema.triggers
    WHERE event_object_schema = %s AND event_object_table = %s
    ORDER BY action_order, trigger_name
"""


class MySQLDriver(Driver):
    """Driver for MySQL, reading ``information_schema`` and ``SHOW CREATE TABLE``."""

    NAME = "mysql"

    # Minimum server versions for optional catalog features
    GENERATED_COLUMN_VERSION = (5, 7, 6)
    CHECK_CONSTRAINT_VERSION = (8, 0, 16)

    CHECK_CONSTRAINTS_SQL = CHECK_CONSTRAINTS_SQL

    # Session variable bounding SELECT run time, and its unit per second
    STATEMENT_TIMEOUT_VARIABLE = "max_execution_time"
    STATEMENT_TIMEOUT_SCALE = 1000
    STATEMENT_TIMEOUT_VERSION = (5, 7, 8)

    def probe_info(self) -> DriverInfo:
        row = self._query_one("SELECT version()", operation="version")
        version = str(row[0]) if row else ""
        parsed = parse_version(version)
        return DriverInfo(
            name=self.NAME,
            database_version=version,
            supports_generated_columns=parsed >= self.GENERATED_COLUMN_VERSION,
            supports_check_constraints=parsed >= self.CHECK_CONSTRAINT_VERSION,
            concurrent_safe=False,
        )

    @contextmanager
    def statement_timeout(self, seconds: Optional[float]) -> Iterator[None]:
        """Bound each statement by the time left, restoring the session value after.

        pymysql has no way to cancel a running query from another thread,
        so the server enforces the deadline instead.
        """
        if seconds is None or parse_version(self.info().database_version) < self.STATEMENT_TIMEOUT_VERSION:
            yield
            return

        variable = self.STATEMENT_TIMEOUT_VARIABLE
        row = self._query_one(f"SELECT @@SESSION.{variable}", operation="statement timeout")
        previous = row[0] if row else 0
        limit = max(1, int(seconds * self.STATEMENT_TIMEOUT_SCALE))
        self._query(f"SET SESSION {variable} = %s", (limit,), operation="statement timeout")
        try:
            yield
        finally:
            # Bypasses the cancellation checks so the caller's connection is always restored
            self._execute(f"SET SESSION {variable} = %s", (previous,), operation="statement timeout")

    def fetch_tables(self, pattern: str = "") -> List[TableInfo]:
        like = self._like(pattern)
        rows = self._query(TABLES_SQL, (self.schema_name, like, like), operation="tables")
        return [
            TableInfo(
                name=name,
                type=table_type,
                comment=comment,
                created_at=created_at,
            )
            for name, table_type, comment, created_at in rows
        ]

    def show_create_table(self, table: str) -> Optional[str]:
        sql = f"SHOW CREATE TABLE {quote_identifier(self.schema_name)}.{quote_identifier(table)}"
        row = self._query_one(sql, operation="show create table", table=table)
        if not row or len(row) < 2 or not row[1]:
            return None
        definition = row[1]
        if not self.show_auto_increment:
            definition = _AUTO_INCREMENT_RE.sub("", definition)
        return definition

    def view_definition(self, view: str) -> Optional[str]:
        row = self._query_one(VIEW_DEFINITION_SQL, (self.schema_name, view), operation="view definition", table=view)
        if not row or not row[0]:
            return None
        return row[0]

    def columns(self, table: str) -> List[Column]:
        generated = self.info().supports_generated_columns
        sql = GENERATED_COLUMNS_SQL if generated else COLUMNS_SQL
        rows = self._query(sql, (self.schema_name, table), operation="columns", table=table)

        columns = []
        for row in rows:
            name, default, is_nullable, column_type, comment, extra = row[:6]
            generation_expression = row[6] if generated else None
            columns.append(Column(
                name=name,
                type=column_type,
                nullable=convert_column_nullable(is_nullable),
                default=self._normalize_default(default),
                comment=comment,
                extra_def=build_extra_def(extra, generation_expression),
            ))
        return columns

    def _normalize_default(self, default: Optional[str]) -> Optional[str]:
        return default

    def indexes(self, table: str) -> List[Index]:
        rows = self._query(INDEXES_SQL, (self.schema_name, table), operation="indexes", table=table)

        indexes = []
        for name, non_unique, index_type, column_names, comment in rows:
            unique = int(non_unique) == 0
            primary = unique and name == "PRIMARY"
            indexes.append(Index(
                name=name,
                definition=index_definition(name, unique, primary, index_type, column_names),
                table=table,
                columns=split_list(column_names),
                unique=unique,
                primary=primary,
                comment=comment or None,
            ))
        return indexes

    def constraints(self, table: str) -> List[Constraint]:
        rows = self._query(KEY_CONSTRAINTS_SQL, (self.schema_name, table), operation="constraints", table=table)

        constraints = []
        for name, constraint_type, column_names, ref_table, ref_columns, update_rule, delete_rule in rows:
            constraints.append(Constraint(
                name=name,
                type=constraint_type,
                definition=constraint_definition(
                    name, constraint_type, column_names, ref_table, ref_columns, update_rule, delete_rule
                ),
                table=table,
                columns=split_list(column_names),
                referenced_table=ref_table if constraint_type == CONSTRAINT_FOREIGN_KEY else None,
                referenced_columns=split_list(ref_columns) if constraint_type == CONSTRAINT_FOREIGN_KEY else [],
            ))

        if self.info().supports_check_constraints:
            rows = self._query(
                self.CHECK_CONSTRAINTS_SQL, (self.schema_name, table), operation="check constraints", table=table
            )
            for name, clause in rows:
                constraints.append(Constraint(
                    name=name,
                    type=CONSTRAINT_CHECK,
                    definition=f"CHECK {wrap_parens(clause)}",
                    table=table,
                ))

        # information_schema names compare case-insensitively
        constraints.sort(key=lambda c: c.name.lower())
        return constraints

    def triggers(self, table: str) -> List[Trigger]:
        rows = self._query(TRIGGERS_SQL, (self.schema_name, table), operation="triggers", table=table)
        return [
            Trigger(
                name=name,
                timing=timing,
                event=event,
                definition=f"CREATE TRIGGER {name} {timing} {event} ON {table}\nFOR EACH {orientation}\n{statement}",
            )
            for name, timing, event, orientation, statement in rows
        ]


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def wrap_parens(clause: str) -> str:
    clause = clause.strip()
    if clause.startswith("(") and clause.endswith(")"):
        return clause
    return f"({clause})"


def index_definition(name: str, unique: bool, primary: bool, index_type: str, column_names: str) -> str:
    if primary:
        return f"PRIMARY KEY ({column_names}) USING {index_type}"
    if index_type == "FULLTEXT":
        return f"FULLTEXT KEY {name} ({column_names})"
    if index_type == "SPATIAL":
        return f"SPATIAL KEY {name} ({column_names})"
    if unique:
        return f"UNIQUE KEY {name} ({column_names}) USING {index_type}"
    return f"KEY {name} ({column_names}) USING {index_type}"


def constraint_definition(
    name: str,
    constraint_type: str,
    column_names: str,
    ref_table: Optional[str],
    ref_columns: Optional[str],
    update_rule: Optional[str],
    delete_rule: Optional[str],
) -> str:
    if constraint_type == CONSTRAINT_PRIMARY_KEY:
        return f"PRIMARY KEY ({column_names})"
    if constraint_type == CONSTRAINT_UNIQUE:
        return f"UNIQUE KEY {name} ({column_names})"
    if constraint_type == CONSTRAINT_FOREIGN_KEY:
        definition = f"FOREIGN KEY ({column_names}) REFERENCES {ref_table} ({ref_columns})"
        if update_rule:
            definition += f" ON UPDATE {update_rule}"
        if delete_rule:
            definition += f" ON DELETE {delete_rule}"
        return definition
    return f"{constraint_type} ({column_names})"
