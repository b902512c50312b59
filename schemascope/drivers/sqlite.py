"""SQLite driver."""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..models import (
    CONSTRAINT_CHECK,
    CONSTRAINT_FOREIGN_KEY,
    CONSTRAINT_PRIMARY_KEY,
    CONSTRAINT_UNIQUE,
    TABLE_TYPE_BASE,
    TABLE_TYPE_VIEW,
    Column,
    Constraint,
    DriverInfo,
    Index,
    TableInfo,
    Trigger,
)
from .base import Driver, build_extra_def, convert_column_nullable, parse_version

logger = logging.getLogger(__name__)

# First SQLite release with generated columns (and pragma_table_xinfo)
GENERATED_COLUMN_VERSION = (3, 31, 0)

TABLE_TYPES = {"table": TABLE_TYPE_BASE, "view": TABLE_TYPE_VIEW}

# pragma_table_xinfo "hidden" values for generated columns
HIDDEN_KINDS = {2: "VIRTUAL GENERATED", 3: "STORED GENERATED"}

TABLES_SQL = """
    SELECT name, type
    FROM sqlite_master
    WHERE type IN ('table', 'view')
        AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'
        AND name LIKE ?
"""

TABLE_SQL = "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?"

VIEW_SQL = "SELECT sql FROM sqlite_master WHERE type = 'view' AND name = ?"

GENERATED_COLUMNS_SQL = 'SELECT name, type, "notnull", dflt_value, pk, hidden FROM pragma_table_xinfo(?) ORDER BY cid'

COLUMNS_SQL = 'SELECT name, type, "notnull", dflt_value, pk FROM pragma_table_info(?) ORDER BY cid'

PRIMARY_KEY_SQL = "SELECT name FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk"

INDEXES_SQL = """
    SELECT il.name, il."unique", il.origin, m.sql
    FROM pragma_index_list(?) AS il
    LEFT JOIN sqlite_master AS m ON m.type = 'index' AND m.name = il.name
    ORDER BY il.name
"""

INDEX_COLUMNS_SQL = "SELECT name FROM pragma_index_info(?) ORDER BY seqno"

FOREIGN_KEYS_SQL = """
    SELECT id, "table", "from", "to", on_update, on_delete
    FROM pragma_foreign_key_list(?)
    ORDER BY id, seq
"""

TRIGGERS_SQL = "SELECT name, sql FROM sqlite_master WHERE type = 'trigger' AND tbl_name = ?"

IDENT = r'(?:"(?:[^"]|"")*"|`[^`]*`|\[[^\]]*\]|[\w$.]+)'

_CREATE_TABLE_RE = re.compile(
    r"\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?" + IDENT + r"\s*\(",
    re.I,
)
_VIEW_BODY_RE = re.compile(
    r"\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?" + IDENT
    + r"\s*(?:\([^)]*\)\s*)?AS\s+(.*?)\s*;?\s*$",
    re.I | re.S,
)
_TRIGGER_RE = re.compile(
    r"TRIGGER\s+(?:IF\s+NOT\s+EXISTS\s+)?" + IDENT
    + r"\s+(BEFORE|AFTER|INSTEAD\s+OF)?\s*(DELETE|INSERT|UPDATE)\b",
    re.I,
)
_TABLE_CONSTRAINT_RE = re.compile(r"(?:CONSTRAINT|PRIMARY|UNIQUE|FOREIGN|CHECK)\b", re.I)
_NAMED_CONSTRAINT_RE = re.compile(
    r"CONSTRAINT\s+(" + IDENT + r")\s+(PRIMARY\s+KEY|UNIQUE|FOREIGN\s+KEY|REFERENCES)",
    re.I,
)
_CHECK_RE = re.compile(r"(?:CONSTRAINT\s+(" + IDENT + r")\s+)?\bCHECK\s*\(", re.I)
_GENERATED_RE = re.compile(r"\bAS\s*\(", re.I)
_COLUMN_LIST_RE = re.compile(r"\s*\(([^)]*)\)")


class SQLiteDriver(Driver):
    """Driver for SQLite, reading ``sqlite_master`` and the table pragmas.

    SQLite keeps no comments and stores DDL verbatim. Generated-column
    expressions, CHECK clauses and constraint names are only available in
    that stored ``CREATE TABLE`` text, so they are parsed out of it.
    """

    NAME = "sqlite"

    def probe_info(self) -> DriverInfo:
        row = self._query_one("SELECT sqlite_version()", operation="version")
        version = str(row[0]) if row else ""
        parsed = parse_version(version)
        return DriverInfo(
            name=self.NAME,
            database_version=version,
            supports_generated_columns=parsed >= GENERATED_COLUMN_VERSION,
            supports_check_constraints=True,
            concurrent_safe=False,
        )

    def interrupt(self) -> None:
        self.conn.interrupt()

    def fetch_tables(self, pattern: str = "") -> List[TableInfo]:
        rows = self._query(TABLES_SQL, (self._like(pattern),), operation="tables")
        return [TableInfo(name=name, type=TABLE_TYPES.get(kind, kind)) for name, kind in rows]

    def show_create_table(self, table: str) -> Optional[str]:
        row = self._query_one(TABLE_SQL, (table,), operation="show create table", table=table)
        if not row or not row[0]:
            return None
        return row[0]

    def view_definition(self, view: str) -> Optional[str]:
        row = self._query_one(VIEW_SQL, (view,), operation="view definition", table=view)
        if not row or not row[0]:
            return None
        match = _VIEW_BODY_RE.match(strip_comments(row[0]))
        if not match:
            logger.debug("Could not find the body of view %s", view)
            return None
        return match.group(1)

    def columns(self, table: str) -> List[Column]:
        generated = self.info().supports_generated_columns
        sql = GENERATED_COLUMNS_SQL if generated else COLUMNS_SQL
        rows = self._query(sql, (table,), operation="columns", table=table)

        segments = None
        columns = []
        for row in rows:
            name, column_type, notnull, default, _pk = row[:5]
            hidden = row[5] if generated else 0
            if hidden == 1:
                continue

            extra = HIDDEN_KINDS.get(hidden)
            expression = None
            if extra:
                if segments is None:
                    segments = table_definitions(self.show_create_table(table) or "")
                expression = generation_expression(find_column_segment(segments, name))

            columns.append(Column(
                name=name,
                type=column_type,
                nullable=convert_column_nullable("NO" if notnull else "YES"),
                default=default,
                extra_def=build_extra_def(extra, expression),
            ))
        return columns

    def indexes(self, table: str) -> List[Index]:
        rows = self._query(INDEXES_SQL, (table,), operation="indexes", table=table)

        indexes = []
        for name, unique, origin, sql in rows:
            columns = self._index_columns(name, table)
            primary = origin == "pk"
            if sql:
                definition = sql
            elif primary:
                definition = f"PRIMARY KEY ({', '.join(columns)})"
            else:
                definition = f"UNIQUE ({', '.join(columns)})"
            indexes.append(Index(
                name=name,
                definition=definition,
                table=table,
                columns=columns,
                unique=bool(unique),
                primary=primary,
            ))
        return indexes

    def _index_columns(self, index: str, table: str) -> List[str]:
        rows = self._query(INDEX_COLUMNS_SQL, (index,), operation="index columns", table=table)
        return [name for (name,) in rows if name is not None]

    def constraints(self, table: str) -> List[Constraint]:
        segments = table_definitions(self.show_create_table(table) or "")
        names = named_constraints(segments)
        constraints = []

        pk_columns = [name for (name,) in self._query(PRIMARY_KEY_SQL, (table,), operation="primary key", table=table)]
        if pk_columns:
            constraints.append(Constraint(
                name=names.get((CONSTRAINT_PRIMARY_KEY, _key(pk_columns)), f"{table}_pkey"),
                type=CONSTRAINT_PRIMARY_KEY,
                definition=f"PRIMARY KEY ({', '.join(pk_columns)})",
                table=table,
                columns=pk_columns,
            ))

        for index in self.indexes(table):
            if not index.unique or index.primary or not index.name.startswith("sqlite_autoindex_"):
                continue
            constraints.append(Constraint(
                name=names.get((CONSTRAINT_UNIQUE, _key(index.columns)), index.name),
                type=CONSTRAINT_UNIQUE,
                definition=f"UNIQUE ({', '.join(index.columns)})",
                table=table,
                columns=index.columns,
            ))

        constraints.extend(self._foreign_keys(table, names))
        constraints.extend(check_constraints(table, segments))

        # Default names are generated, so order by name for a stable result
        constraints.sort(key=lambda c: c.name.lower())
        return constraints

    def _foreign_keys(self, table: str, names: Dict[Tuple[str, Tuple[str, ...]], str]) -> List[Constraint]:
        rows = self._query(FOREIGN_KEYS_SQL, (table,), operation="foreign keys", table=table)

        grouped: Dict[int, dict] = {}
        for fk_id, parent, from_col, to_col, on_update, on_delete in rows:
            fk = grouped.setdefault(fk_id, {
                "parent": parent,
                "columns": [],
                "referenced_columns": [],
                "on_update": on_update,
                "on_delete": on_delete,
            })
            fk["columns"].append(from_col)
            if to_col is not None:
                fk["referenced_columns"].append(to_col)

        constraints = []
        for fk in grouped.values():
            columns = fk["columns"]
            definition = f"FOREIGN KEY ({', '.join(columns)}) REFERENCES {fk['parent']}"
            if fk["referenced_columns"]:
                definition += f" ({', '.join(fk['referenced_columns'])})"
            definition += f" ON UPDATE {fk['on_update']} ON DELETE {fk['on_delete']}"
            constraints.append(Constraint(
                name=names.get((CONSTRAINT_FOREIGN_KEY, _key(columns)), f"{table}_{'_'.join(columns)}_fk"),
                type=CONSTRAINT_FOREIGN_KEY,
                definition=definition,
                table=table,
                columns=columns,
                referenced_table=fk["parent"],
                referenced_columns=fk["referenced_columns"],
            ))
        return constraints

    def triggers(self, table: str) -> List[Trigger]:
        rows = self._query(TRIGGERS_SQL, (table,), operation="triggers", table=table)

        triggers = []
        for name, sql in rows:
            timing, event = "", ""
            match = _TRIGGER_RE.search(strip_comments(sql or ""))
            if match:
                timing = " ".join((match.group(1) or "BEFORE").upper().split())
                event = match.group(2).upper()
            triggers.append(Trigger(name=name, timing=timing, event=event, definition=sql or ""))
        return triggers


def _key(columns: List[str]) -> Tuple[str, ...]:
    return tuple(c.lower() for c in columns)


def unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if len(identifier) >= 2:
        if identifier[0] == '"' and identifier[-1] == '"':
            return identifier[1:-1].replace('""', '"')
        if identifier[0] in "`[" and identifier[-1] in "`]":
            return identifier[1:-1]
    return identifier


def strip_comments(sql: str) -> str:
    """Replace ``--`` and ``/* */`` comments outside quotes with a space."""
    out = []
    quote = None
    i = 0
    while i < len(sql):
        ch = sql[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
        elif ch == "[":
            quote = "]"
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = len(sql) if end == -1 else end
            out.append(" ")
            continue
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = len(sql) if end == -1 else end + 2
            out.append(" ")
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def mask_literals(text: str) -> str:
    """Blank out the contents of string literals, keeping every offset."""
    out = []
    quote = None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
            elif quote == "'":
                ch = " "
        elif ch in "'\"`":
            quote = ch
        elif ch == "[":
            quote = "]"
        out.append(ch)
    return "".join(out)


def balanced(text: str, start: int) -> str:
    """Return the parenthesized group that opens at ``text[start]``."""
    depth = 0
    quote = None
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
        elif ch == "[":
            quote = "]"
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return text[start:]


def split_top_level(text: str) -> List[str]:
    """Split on commas that are outside parentheses and quotes."""
    parts = []
    current = []
    depth = 0
    quote = None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
        elif ch == "[":
            quote = "]"
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def table_definitions(sql: str) -> List[str]:
    """Column and table-constraint clauses of a ``CREATE TABLE`` statement."""
    sql = strip_comments(sql)
    match = _CREATE_TABLE_RE.match(sql)
    if not match:
        return []
    body = balanced(sql, match.end() - 1)
    return split_top_level(body[1:-1])


def is_table_constraint(segment: str) -> bool:
    return _TABLE_CONSTRAINT_RE.match(segment) is not None


def segment_column(segment: str) -> Optional[str]:
    match = re.match(IDENT, segment)
    return unquote(match.group(0)) if match else None


def find_column_segment(segments: List[str], column: str) -> str:
    for segment in segments:
        if is_table_constraint(segment):
            continue
        name = segment_column(segment)
        if name is not None and name.lower() == column.lower():
            return segment
    return ""


def generation_expression(segment: str) -> Optional[str]:
    """``(expr)`` from ``col TYPE [GENERATED ALWAYS] AS (expr) [VIRTUAL|STORED]``."""
    match = _GENERATED_RE.search(mask_literals(segment))
    if not match:
        return None
    return balanced(segment, match.end() - 1)


def named_constraints(segments: List[str]) -> Dict[Tuple[str, Tuple[str, ...]], str]:
    """Map (constraint type, lowercased columns) to names from ``CONSTRAINT x`` clauses."""
    names = {}
    for segment in segments:
        table_level = is_table_constraint(segment)
        column = None if table_level else segment_column(segment)
        for match in _NAMED_CONSTRAINT_RE.finditer(mask_literals(segment)):
            kind = " ".join(match.group(2).upper().split())
            if kind == "REFERENCES":
                kind = CONSTRAINT_FOREIGN_KEY
            if table_level:
                columns_match = _COLUMN_LIST_RE.match(segment, match.end())
                if not columns_match:
                    continue
                columns = [unquote(c.split()[0]) for c in columns_match.group(1).split(",") if c.strip()]
            else:
                columns = [column]
            names[(kind, _key(columns))] = unquote(match.group(1))
    return names


def check_constraints(table: str, segments: List[str]) -> List[Constraint]:
    constraints = []
    for segment in segments:
        for match in _CHECK_RE.finditer(mask_literals(segment)):
            clause = balanced(segment, match.end() - 1)
            name = unquote(match.group(1)) if match.group(1) else f"{table}_check_{len(constraints) + 1}"
            column = None if is_table_constraint(segment) else segment_column(segment)
            constraints.append(Constraint(
                name=name,
                type=CONSTRAINT_CHECK,
                definition=f"CHECK {clause}",
                table=table,
                columns=[column] if column else [],
            ))
    return constraints
