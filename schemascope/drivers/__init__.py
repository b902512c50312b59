"""Engine drivers.

One driver per engine family, all implementing :class:`Driver`. The
backend is chosen once, by :func:`new_driver`, and callers never branch on
the engine themselves.
"""

from enum import Enum
from typing import Any, Dict, Optional, Type, Union

from ..cancel import CancelToken
from ..config import Settings
from ..errors import UnsupportedDriverError
from .base import Driver, build_extra_def, convert_column_nullable
from .mariadb import MariaDBDriver
from .mysql import MySQLDriver
from .postgres import PostgresDriver
from .sqlite import SQLiteDriver


class DriverKind(str, Enum):
    """Supported engine families."""
    MYSQL = "mysql"
    MARIADB = "mariadb"
    POSTGRES = "postgres"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: Union[str, "DriverKind"]) -> "DriverKind":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedDriverError(str(value)) from None


_ALIASES = {
    "maria": "mariadb",
    "postgresql": "postgres",
    "pg": "postgres",
    "sqlite3": "sqlite",
}

DRIVERS: Dict[DriverKind, Type[Driver]] = {
    DriverKind.MYSQL: MySQLDriver,
    DriverKind.MARIADB: MariaDBDriver,
    DriverKind.POSTGRES: PostgresDriver,
    DriverKind.SQLITE: SQLiteDriver,
}


def new_driver(
    kind: Union[str, DriverKind],
    conn: Any,
    settings: Optional[Settings] = None,
    cancel_token: Optional[CancelToken] = None,
    schema_name: Optional[str] = None,
) -> Driver:
    """Create the driver for ``kind`` around an open connection.

    Raises:
        UnsupportedDriverError: ``kind`` is not a known engine
    """
    driver_cls = DRIVERS[DriverKind.parse(kind)]
    return driver_cls(conn, settings=settings, cancel_token=cancel_token, schema_name=schema_name)


__all__ = [
    "Driver",
    "DriverKind",
    "DRIVERS",
    "new_driver",
    "build_extra_def",
    "convert_column_nullable",
    "MySQLDriver",
    "MariaDBDriver",
    "PostgresDriver",
    "SQLiteDriver",
]
