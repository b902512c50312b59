"""Error types for schemascope."""

from typing import Optional, Dict, Any


class SchemascopeError(Exception):
    """Base exception for schemascope errors."""

    def __init__(self, message: str, code: str = "SCHEMASCOPE_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a plain dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class QueryError(SchemascopeError):
    """A catalog query failed (syntax, permission, lost connection)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="QUERY_ERROR", details=details)

    @property
    def operation(self) -> Optional[str]:
        return self.details.get("operation")

    @property
    def table(self) -> Optional[str]:
        return self.details.get("table")


class AssemblyError(SchemascopeError):
    """Driver output could not be turned into the schema model.

    Raised for failures that are not catalog query errors, such as a row
    with an unexpected shape. The original exception is chained.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ASSEMBLY_ERROR", details=details)

    @property
    def operation(self) -> Optional[str]:
        return self.details.get("operation")

    @property
    def table(self) -> Optional[str]:
        return self.details.get("table")


class TableNotFoundError(SchemascopeError):
    """Requested table does not appear in the catalog listing."""

    def __init__(self, table: str, schema: Optional[str] = None):
        message = f"Table not found: {table}"
        if schema:
            message = f"Table not found: {schema}.{table}"
        super().__init__(message, code="TABLE_NOT_FOUND", details={"table": table, "schema": schema})
        self.table = table


class AnalysisCancelledError(SchemascopeError):
    """Analysis was cancelled or ran past its deadline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ANALYSIS_CANCELLED", details=details)


class UnsupportedDriverError(SchemascopeError):
    """No backend exists for the requested engine kind."""

    def __init__(self, kind: str):
        super().__init__(
            f"Unsupported driver '{kind}'",
            code="UNSUPPORTED_DRIVER",
            details={"kind": kind},
        )
