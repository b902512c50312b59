"""Definition text for tables and views."""

import logging
from typing import TYPE_CHECKING

from .models import TABLE_TYPE_BASE, TABLE_TYPE_VIEW, TableInfo

if TYPE_CHECKING:
    from .drivers.base import Driver

logger = logging.getLogger(__name__)


class DDLReconstructor:
    """Produces ``CREATE TABLE`` / ``CREATE VIEW`` text for a catalog entry.

    Base tables use the engine's native DDL when it has one. Views are
    rebuilt from the catalog's view body. A missing definition yields an
    empty string rather than an error, and no DDL is synthesized from
    column metadata.
    """

    def __init__(self, driver: "Driver"):
        self.driver = driver

    def definition(self, info: TableInfo) -> str:
        """Return the definition text for ``info`` ('' when unavailable)."""
        if info.type == TABLE_TYPE_BASE:
            return self.driver.show_create_table(info.name) or ""
        if info.type == TABLE_TYPE_VIEW:
            body = self.driver.view_definition(info.name)
            if not body:
                logger.debug("No view definition for %s", info.name)
                return ""
            return view_ddl(info.name, body)
        logger.debug("Skipping definition of %s (type %s)", info.name, info.type)
        return ""


def view_ddl(name: str, body: str) -> str:
    """``CREATE VIEW <name> AS (<body>)``"""
    return f"CREATE VIEW {name} AS ({body})"
