"""Abstract base class for engine drivers."""

import logging
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from ..cancel import CancelToken
from ..config import Settings, settings as default_settings
from ..errors import QueryError
from ..models import Column, Constraint, DriverInfo, Index, Schema, Table, TableInfo, Trigger

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def convert_column_nullable(value: Optional[str]) -> bool:
    """A column is nullable unless the catalog says exactly ``NO``."""
    return value != "NO"


def build_extra_def(extra: Optional[str], generation_expression: Optional[str]) -> Optional[str]:
    """Merge the catalog ``extra`` attribute with a generation expression."""
    if not generation_expression:
        return extra
    if extra == "VIRTUAL GENERATED":
        return f"GENERATED ALWAYS AS {generation_expression} VIRTUAL"
    if extra == "STORED GENERATED":
        return f"GENERATED ALWAYS AS {generation_expression} STORED"
    return f"{extra or ''}:{generation_expression}"


def parse_version(version: str) -> Tuple[int, int, int]:
    """Parse the leading ``major.minor.patch`` out of a server version string.

    ``'10.6.12-MariaDB-1:10.6.12+maria~ubu2004'`` -> ``(10, 6, 12)``
    """
    match = _VERSION_RE.search(version or "")
    if not match:
        return (0, 0, 0)
    return tuple(int(part or 0) for part in match.groups())


def split_list(value: Optional[str], separator: str = ", ") -> List[str]:
    """Split a catalog-aggregated column list."""
    if not value:
        return []
    return [part.strip() for part in value.split(separator.strip()) if part.strip()]


class Driver(ABC):
    """Common interface for engine drivers.

    A driver wraps an already-open DB-API connection. It issues the
    catalog queries of one engine and maps rows to the shared model.
    Subclasses implement the engine hooks; table listing, single-table
    assembly and whole-schema analysis are shared and go through
    :class:`~schemascope.assembler.SchemaAssembler`.
    """

    # Override in subclasses
    NAME: str = ""

    def __init__(
        self,
        conn: Any,
        settings: Optional[Settings] = None,
        cancel_token: Optional[CancelToken] = None,
        schema_name: Optional[str] = None,
    ):
        """Initialize the driver.

        Args:
            conn: Open DB-API 2.0 connection. The driver never closes it.
            settings: Options applied for the lifetime of this driver
            cancel_token: Cancellation signal checked around every query.
                Without one, each call to ``analyze``, ``tables`` or ``table``
                gets a fresh token bound to ``settings.timeout``.
            schema_name: Schema to inspect when used without ``analyze``
        """
        settings = settings or default_settings
        self.conn = conn
        self.show_auto_increment = settings.show_auto_increment
        self.max_workers = settings.max_workers
        self.timeout = settings.timeout
        self._caller_token = cancel_token
        self.cancel_token = cancel_token or CancelToken()
        self.schema_name = schema_name
        self._info: Optional[DriverInfo] = None

    # Driver contract

    def analyze(self, schema: Schema) -> None:
        """Populate ``schema`` (only ``name`` set) with every table and relation."""
        from ..assembler import SchemaAssembler

        self.schema_name = schema.name
        with self._session():
            SchemaAssembler(self).analyze(schema)

    def info(self) -> DriverInfo:
        """Engine identity and capabilities, probed once and cached."""
        if self._info is None:
            self._info = self.probe_info()
            logger.debug(
                "%s driver: version %s, generated columns=%s, check constraints=%s",
                self._info.name,
                self._info.database_version,
                self._info.supports_generated_columns,
                self._info.supports_check_constraints,
            )
        return self._info

    def tables(self, pattern: str = "") -> List[TableInfo]:
        """List tables and views whose name or comment contains ``pattern``."""
        from ..assembler import SchemaAssembler

        with self._session():
            return SchemaAssembler(self).tables(pattern)

    def table(self, name: str) -> Table:
        """Fully analyze the table called ``name``."""
        from ..assembler import SchemaAssembler

        with self._session():
            return SchemaAssembler(self).table(name)

    # Engine hooks

    @abstractmethod
    def probe_info(self) -> DriverInfo:
        """Query the server version and derive capability flags."""
        pass

    @abstractmethod
    def fetch_tables(self, pattern: str = "") -> List[TableInfo]:
        """Catalog scan for tables and views, without definitions."""
        pass

    @abstractmethod
    def columns(self, table: str) -> List[Column]:
        """Columns of ``table`` in ordinal order."""
        pass

    @abstractmethod
    def indexes(self, table: str) -> List[Index]:
        pass

    @abstractmethod
    def constraints(self, table: str) -> List[Constraint]:
        pass

    @abstractmethod
    def triggers(self, table: str) -> List[Trigger]:
        pass

    @abstractmethod
    def show_create_table(self, table: str) -> Optional[str]:
        """Native DDL for a base table, or ``None`` if the engine has none."""
        pass

    @abstractmethod
    def view_definition(self, view: str) -> Optional[str]:
        """The body of a view (the query after ``AS``), or ``None``."""
        pass

    # Cancellation hooks

    def interrupt(self) -> None:
        """Stop the query running on ``conn``, called from another thread.

        Engines whose connection cannot be interrupted rely on the checks
        between queries and on :meth:`statement_timeout`.
        """
        pass

    @contextmanager
    def statement_timeout(self, seconds: Optional[float]) -> Iterator[None]:
        """Apply a server-side statement timeout for the duration of the block."""
        yield

    # Helpers

    @property
    def concurrent_safe(self) -> bool:
        return self.info().concurrent_safe

    @contextmanager
    def _session(self) -> Iterator[None]:
        """Bind one top-level call to a token, its deadline and the interrupt hook."""
        token = self._caller_token or CancelToken(timeout=self.timeout)
        self.cancel_token = token
        with token.interrupting(self.interrupt):
            with self.statement_timeout(token.remaining()):
                yield

    def _query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        operation: str = "query",
        table: Optional[str] = None,
    ) -> List[tuple]:
        """Execute a catalog query and return all rows.

        Any driver exception is wrapped in :class:`QueryError` carrying the
        operation and table name, or turned into
        :class:`AnalysisCancelledError` when the query was interrupted.
        Nothing is retried.
        """
        self.cancel_token.raise_if_cancelled(operation, table)
        rows = self._execute(sql, params, operation, table)
        self.cancel_token.raise_if_cancelled(operation, table)
        return rows

    def _execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        operation: str = "query",
        table: Optional[str] = None,
    ) -> List[tuple]:
        logger.debug("%s: %s (schema=%s, table=%s)", self.NAME, operation, self.schema_name, table)
        try:
            cursor = self.conn.cursor()
            try:
                # pyformat drivers only expand %-escapes when given parameters
                if params:
                    cursor.execute(sql, tuple(params))
                else:
                    cursor.execute(sql)
                rows = cursor.fetchall()
            finally:
                cursor.close()
        except Exception as e:
            if self.cancel_token.cancelled:
                raise self.cancel_token.error(operation, table) from e
            where = f" of '{table}'" if table else ""
            raise QueryError(
                f"{self.NAME}: {operation}{where} failed: {e}",
                details={"operation": operation, "schema": self.schema_name, "table": table},
            ) from e
        return list(rows)

    def _query_one(self, sql: str, params: Sequence[Any] = (), operation: str = "query", table: Optional[str] = None):
        rows = self._query(sql, params, operation, table)
        return rows[0] if rows else None

    @staticmethod
    def _like(pattern: str) -> str:
        return f"%{pattern}%"
