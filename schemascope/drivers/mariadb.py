"""MariaDB driver."""

from typing import Optional

from .mysql import MySQLDriver


class MariaDBDriver(MySQLDriver):
    """Driver for MariaDB.

    The catalog layout is MySQL's, but MariaDB reports column defaults as
    SQL literals: a missing default comes back as the string ``NULL`` and
    string defaults keep their quotes.
    """

    NAME = "mariadb"

    GENERATED_COLUMN_VERSION = (10, 2, 5)
    CHECK_CONSTRAINT_VERSION = (10, 2, 22)

    # Column-level checks are named after the column, so names repeat
    # across tables and the lookup has to go by table name.
    CHECK_CONSTRAINTS_SQL = """
    SELECT cc.constraint_name, cc.check_clause
    FROM information_schema.check_constraints AS cc
    WHERE cc.constraint_schema = %s AND cc.table_name = %s
    ORDER BY cc.constraint_name
"""

    STATEMENT_TIMEOUT_VARIABLE = "max_statement_time"
    STATEMENT_TIMEOUT_SCALE = 1
    STATEMENT_TIMEOUT_VERSION = (10, 1, 1)

    def _normalize_default(self, default: Optional[str]) -> Optional[str]:
        if default is None or default == "NULL":
            return None
        if len(default) >= 2 and default.startswith("'") and default.endswith("'"):
            return default[1:-1].replace("''", "'")
        return default
