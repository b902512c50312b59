"""Read-only schema introspection for MySQL, MariaDB, PostgreSQL and SQLite.

Hand over an open DB-API connection and get back a :class:`Schema` with
tables, columns, indexes, constraints, triggers, foreign-key relations and
definition text.
"""

import logging
from typing import Any, Optional, Union

from .assembler import SchemaAssembler
from .cancel import CancelToken
from .config import Settings, settings
from .ddl import DDLReconstructor
from .drivers import Driver, DriverKind, new_driver
from .errors import (
    AnalysisCancelledError,
    AssemblyError,
    QueryError,
    SchemascopeError,
    TableNotFoundError,
    UnsupportedDriverError,
)
from .models import (
    Column,
    Constraint,
    DriverInfo,
    Index,
    Relation,
    Schema,
    Table,
    TableInfo,
    Trigger,
)
from .relations import RelationResolver

logger = logging.getLogger(__name__)


def analyze(
    conn: Any,
    kind: Union[str, DriverKind],
    schema_name: str,
    settings: Optional[Settings] = None,
    cancel_token: Optional[CancelToken] = None,
) -> Schema:
    """Analyze ``schema_name`` over ``conn`` and return the populated model.

    The connection stays open; closing it is up to the caller.

    Args:
        conn: Open DB-API connection
        kind: Engine family (``mysql``, ``mariadb``, ``postgres``, ``sqlite``)
        schema_name: Database (MySQL family), namespace (PostgreSQL) or a
            label for the main database (SQLite)
        settings: Analysis options (default: environment settings)
        cancel_token: Cancellation signal (default: one bound to
            ``settings.timeout``)

    Returns:
        The populated Schema
    """
    driver = new_driver(kind, conn, settings=settings, cancel_token=cancel_token)
    schema = Schema(name=schema_name)
    logger.debug("Analyzing %s schema %s", driver.NAME, schema_name)
    driver.analyze(schema)
    return schema


__all__ = [
    "analyze",
    # Data models
    "Column",
    "Constraint",
    "DriverInfo",
    "Index",
    "Relation",
    "Schema",
    "Table",
    "TableInfo",
    "Trigger",
    # Drivers and assembly
    "Driver",
    "DriverKind",
    "new_driver",
    "SchemaAssembler",
    "DDLReconstructor",
    "RelationResolver",
    # Options
    "CancelToken",
    "Settings",
    "settings",
    # Errors
    "SchemascopeError",
    "QueryError",
    "AssemblyError",
    "TableNotFoundError",
    "AnalysisCancelledError",
    "UnsupportedDriverError",
]
