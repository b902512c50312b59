"""PostgreSQL driver."""

import logging
from typing import List, Optional

from ..models import Column, Constraint, DriverInfo, Index, TableInfo, Trigger
from .base import Driver, build_extra_def, convert_column_nullable, split_list

logger = logging.getLogger(__name__)

# server_version_num of the first release with generated columns
GENERATED_COLUMN_VERSION_NUM = 120000

TABLES_SQL = """
    SELECT
        c.relname AS table_name,
        CASE c.relkind
            WHEN 'r' THEN 'BASE TABLE'
            WHEN 'p' THEN 'BASE TABLE'
            WHEN 'v' THEN 'VIEW'
            WHEN 'm' THEN 'MATERIALIZED VIEW'
            WHEN 'f' THEN 'FOREIGN TABLE'
        END AS table_type,
        obj_description(c.oid, 'pg_class') AS table_comment
    FROM pg_class AS c
    JOIN pg_namespace AS n ON n.oid = c.relnamespace
    WHERE n.nspname = %s
        AND c.relkind IN ('r', 'p', 'v', 'm', 'f')
        AND NOT c.relispartition
        AND (c.relname LIKE %s OR COALESCE(obj_description(c.oid, 'pg_class'), '') LIKE %s)
    ORDER BY c.oid
"""

VIEW_DEFINITION_SQL = """
    SELECT view_definition
    FROM information_schema.views
    WHERE table_schema = %s AND table_name = %s
"""

_COLUMNS_FROM = """
    FROM pg_attribute AS a
    JOIN pg_class AS c ON c.oid = a.attrelid
    JOIN pg_namespace AS n ON n.oid = c.relnamespace
    LEFT JOIN pg_attrdef AS d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE n.nspname = %s AND c.relname = %s AND a.attnum > 0 AND NOT a.attisdropped
    ORDER BY a.attnum
"""

GENERATED_COLUMNS_SQL = """
    SELECT
        a.attname AS column_name,
        CASE WHEN a.attgenerated = '' THEN pg_get_expr(d.adbin, d.adrelid) END AS column_default,
        CASE WHEN a.attnotnull THEN 'NO' ELSE 'YES' END AS is_nullable,
        format_type(a.atttypid, a.atttypmod) AS column_type,
        col_description(a.attrelid, a.attnum) AS column_comment,
        CASE
            WHEN a.attgenerated = 's' THEN 'STORED GENERATED'
            WHEN a.attidentity = 'a' THEN 'GENERATED ALWAYS AS IDENTITY'
            WHEN a.attidentity = 'd' THEN 'GENERATED BY DEFAULT AS IDENTITY'
            ELSE ''
        END AS extra,
        CASE WHEN a.attgenerated = 's' THEN pg_get_expr(d.adbin, d.adrelid) END AS generation_expression
""" + _COLUMNS_FROM

COLUMNS_SQL = """
    SELECT
        a.attname AS column_name,
        pg_get_expr(d.adbin, d.adrelid) AS column_default,
        CASE WHEN a.attnotnull THEN 'NO' ELSE 'YES' END AS is_nullable,
        format_type(a.atttypid, a.atttypmod) AS column_type,
        col_description(a.attrelid, a.attnum) AS column_comment,
        '' AS extra
""" + _COLUMNS_FROM

INDEXES_SQL = """
    SELECT
        i.relname AS index_name,
        pg_get_indexdef(i.oid) AS index_def,
        ARRAY_TO_STRING(ARRAY(
            SELECT pg_get_indexdef(i.oid, k, true)
            FROM generate_series(1, x.indnatts) AS k
            ORDER BY k
        ), ', ') AS column_names,
        x.indisunique,
        x.indisprimary,
        obj_description(i.oid, 'pg_class') AS index_comment
    FROM pg_index AS x
    JOIN pg_class AS t ON t.oid = x.indrelid
    JOIN pg_class AS i ON i.oid = x.indexrelid
    JOIN pg_namespace AS n ON n.oid = t.relnamespace
    WHERE n.nspname = %s AND t.relname = %s
    ORDER BY x.indexrelid
"""

CONSTRAINTS_SQL = """
    SELECT
        con.conname,
        con.contype,
        pg_get_constraintdef(con.oid, true) AS constraint_def,
        ARRAY_TO_STRING(ARRAY(
            SELECT a.attname
            FROM UNNEST(con.conkey) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute AS a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
            ORDER BY k.ord
        ), ', ') AS column_names,
        fcls.relname AS referenced_table,
        ARRAY_TO_STRING(ARRAY(
            SELECT a.attname
            FROM UNNEST(con.confkey) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute AS a ON a.attrelid = con.confrelid AND a.attnum = k.attnum
            ORDER BY k.ord
        ), ', ') AS referenced_column_names
    FROM pg_constraint AS con
    JOIN pg_class AS cls ON cls.oid = con.conrelid
    JOIN pg_namespace AS n ON n.oid = cls.relnamespace
    LEFT JOIN pg_class AS fcls ON fcls.oid = con.confrelid
    WHERE n.nspname = %s AND cls.relname = %s
    ORDER BY con.conname
"""

TRIGGERS_SQL = """
    SELECT
        t.tgname,
        CASE
            WHEN t.tgtype::integer & 2 = 2 THEN 'BEFORE'
            WHEN t.tgtype::integer & 64 = 64 THEN 'INSTEAD OF'
            ELSE 'AFTER'
        END AS timing,
        CONCAT_WS(' OR ',
            CASE WHEN t.tgtype::integer & 4 = 4 THEN 'INSERT' END,
            CASE WHEN t.tgtype::integer & 8 = 8 THEN 'DELETE' END,
            CASE WHEN t.tgtype::integer & 16 = 16 THEN 'UPDATE' END,
            CASE WHEN t.tgtype::integer & 32 = 32 THEN 'TRUNCATE' END
        ) AS event,
        pg_get_triggerdef(t.oid, true) AS trigger_def
    FROM pg_trigger AS t
    JOIN pg_class AS c ON c.oid = t.tgrelid
    JOIN pg_namespace AS n ON n.oid = c.relnamespace
    WHERE n.nspname = %s AND c.relname = %s AND NOT t.tgisinternal
    ORDER BY t.tgname
"""

CONSTRAINT_TYPES = {
    "p": "PRIMARY KEY",
    "f": "FOREIGN KEY",
    "u": "UNIQUE",
    "c": "CHECK",
    "x": "EXCLUDE",
    "t": "TRIGGER",
    # PostgreSQL 18 catalogs NOT NULL as a constraint
    "n": "NOT NULL",
}


class PostgresDriver(Driver):
    """Driver for PostgreSQL, reading ``pg_catalog``.

    The schema name is a namespace such as ``public``. PostgreSQL has no
    ``SHOW CREATE TABLE``, so base tables get no definition.
    """

    NAME = "postgres"

    def probe_info(self) -> DriverInfo:
        row = self._query_one("SELECT current_setting('server_version'), current_setting('server_version_num')",
                              operation="version")
        version, version_num = (str(row[0]), int(row[1])) if row else ("", 0)
        return DriverInfo(
            name=self.NAME,
            database_version=version,
            supports_generated_columns=version_num >= GENERATED_COLUMN_VERSION_NUM,
            supports_check_constraints=True,
            # psycopg2 connections may be shared between threads
            concurrent_safe=True,
        )

    def interrupt(self) -> None:
        # Sends a cancel request on a separate connection to the server
        self.conn.cancel()

    def fetch_tables(self, pattern: str = "") -> List[TableInfo]:
        like = self._like(pattern)
        rows = self._query(TABLES_SQL, (self.schema_name, like, like), operation="tables")
        return [TableInfo(name=name, type=table_type, comment=comment) for name, table_type, comment in rows]

    def show_create_table(self, table: str) -> Optional[str]:
        return None

    def view_definition(self, view: str) -> Optional[str]:
        row = self._query_one(VIEW_DEFINITION_SQL, (self.schema_name, view), operation="view definition", table=view)
        if not row or not row[0]:
            return None
        return row[0].strip().rstrip(";").strip()

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
                default=default,
                comment=comment,
                extra_def=build_extra_def(extra, generation_expression),
            ))
        return columns

    def indexes(self, table: str) -> List[Index]:
        rows = self._query(INDEXES_SQL, (self.schema_name, table), operation="indexes", table=table)
        return [
            Index(
                name=name,
                definition=definition,
                table=table,
                columns=split_list(column_names),
                unique=bool(unique),
                primary=bool(primary),
                comment=comment,
            )
            for name, definition, column_names, unique, primary, comment in rows
        ]

    def constraints(self, table: str) -> List[Constraint]:
        rows = self._query(CONSTRAINTS_SQL, (self.schema_name, table), operation="constraints", table=table)

        constraints = []
        for name, contype, definition, column_names, ref_table, ref_columns in rows:
            constraint_type = CONSTRAINT_TYPES.get(contype, contype)
            is_fk = contype == "f"
            constraints.append(Constraint(
                name=name,
                type=constraint_type,
                definition=definition,
                table=table,
                columns=split_list(column_names),
                referenced_table=ref_table if is_fk else None,
                referenced_columns=split_list(ref_columns) if is_fk else [],
            ))
        return constraints

    def triggers(self, table: str) -> List[Trigger]:
        rows = self._query(TRIGGERS_SQL, (self.schema_name, table), operation="triggers", table=table)
        return [
            Trigger(name=name, timing=timing, event=event, definition=definition)
            for name, timing, event, definition in rows
        ]
