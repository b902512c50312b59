"""Assembles driver output into one cross-referenced schema model."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, List, Optional, TypeVar

from .ddl import DDLReconstructor
from .errors import AssemblyError, SchemascopeError, TableNotFoundError
from .models import Schema, Table, TableInfo
from .relations import RelationResolver

if TYPE_CHECKING:
    from .drivers.base import Driver

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SchemaAssembler:
    """Drives one engine driver to build tables and whole schemas.

    Per table the order is columns, indexes, constraints, triggers, then
    foreign-key resolution. The first four fetches are independent and
    run in a thread pool when the driver's connection allows concurrent
    use; resolution always waits for the constraints.
    """

    def __init__(self, driver: "Driver"):
        self.driver = driver
        self.ddl = DDLReconstructor(driver)

    def tables(self, pattern: str = "") -> List[TableInfo]:
        """List tables and views matching ``pattern``, with definitions.

        Catalog order is kept. An empty pattern matches everything.
        """
        infos = self.driver.fetch_tables(pattern)
        logger.debug("Found %d tables matching '%s' in %s", len(infos), pattern, self.driver.schema_name)
        for info, definition in zip(infos, self._map(self._definition, infos)):
            info.definition = definition
        return infos

    def table(self, name: str) -> Table:
        """Build the table called exactly ``name``.

        Raises:
            TableNotFoundError: no table or view with that name exists
        """
        infos = self.tables("")
        info = next((i for i in infos if i.name == name), None)
        if info is None:
            raise TableNotFoundError(name, self.driver.schema_name)
        return self._build_table(info, RelationResolver(i.name for i in infos), self._workers())

    def analyze(self, schema: Schema) -> Schema:
        """Populate ``schema`` with every table and relation.

        Tables are appended as they complete, so on failure the ones built
        before it stay intact; the error is still raised.
        """
        schema.driver = self.driver.info()
        infos = self.tables("")
        resolver = RelationResolver(i.name for i in infos)

        # Parallelize across tables, not inside them, to keep the pool bounded.
        def build(info: TableInfo) -> Table:
            return self._build_table(info, resolver, 1)

        for table in self._imap(build, infos):
            schema.tables.append(table)

        schema.relations = [r for t in schema.tables for r in t.relations]
        logger.debug(
            "Analyzed %s: %d tables, %d relations",
            schema.name,
            len(schema.tables),
            len(schema.relations),
        )
        return schema

    def _build_table(self, info: TableInfo, resolver: RelationResolver, workers: int) -> Table:
        table = Table.from_info(info)
        fetches = [
            self.driver.columns,
            self.driver.indexes,
            self.driver.constraints,
            self.driver.triggers,
        ]
        try:
            results = list(self._imap(lambda fetch: fetch(info.name), fetches, workers))
        except SchemascopeError:
            raise
        except Exception as e:
            raise AssemblyError(
                f"Failed to assemble table '{info.name}': {e}",
                details={"operation": "assemble", "schema": self.driver.schema_name, "table": info.name},
            ) from e
        table.columns, table.indexes, table.constraints, table.triggers = results
        resolver.resolve(table)
        return table

    def _definition(self, info: TableInfo) -> str:
        try:
            return self.ddl.definition(info)
        except SchemascopeError:
            raise
        except Exception as e:
            raise AssemblyError(
                f"Failed to reconstruct definition of '{info.name}': {e}",
                details={"operation": "definition", "schema": self.driver.schema_name, "table": info.name},
            ) from e

    def _workers(self) -> int:
        if self.driver.max_workers > 1 and self.driver.concurrent_safe:
            return self.driver.max_workers
        return 1

    def _map(self, fn: Callable[[T], R], items: Iterable[T]) -> List[R]:
        return list(self._imap(fn, items))

    def _imap(self, fn: Callable[[T], R], items: Iterable[T], workers: Optional[int] = None) -> Iterator[R]:
        """Yield ``fn(item)`` in input order, using a thread pool when allowed.

        The first failure cancels work that has not started yet and
        propagates.
        """
        items = list(items)
        workers = min(self._workers() if workers is None else workers, len(items))
        if workers <= 1:
            for item in items:
                yield fn(item)
            return

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(fn, item) for item in items]
            try:
                for future in futures:
                    yield future.result()
            finally:
                for future in futures:
                    future.cancel()
