"""Foreign-key reference resolution between tables."""

import logging
from typing import Iterable, List, Set, Tuple

from .models import Relation, Table

logger = logging.getLogger(__name__)


class RelationResolver:
    """Turns foreign-key constraints into relations between scanned tables.

    Only the referenced table's name is attached, never a recursive fetch,
    so cyclic foreign keys cannot expand without bound. A reference to a
    table outside the scan is kept with ``parent_table=None``.
    """

    def __init__(self, table_names: Iterable[str]):
        self.table_names: Set[str] = set(table_names)

    def resolve(self, table: Table) -> List[Relation]:
        """Set ``table.relations`` and ``table.referenced_tables``.

        Must run after ``table.constraints`` has been populated.
        """
        relations = []
        for constraint in table.constraints:
            if not constraint.is_foreign_key:
                continue
            referenced = constraint.referenced_table or ""
            parent = referenced if referenced in self.table_names else None
            if parent is None:
                logger.warning(
                    "Unresolved foreign key %s on %s: table '%s' is not in the scan",
                    constraint.name,
                    table.name,
                    referenced,
                )
            relations.append(Relation(
                table=table.name,
                columns=list(constraint.columns),
                referenced_table=referenced,
                referenced_columns=list(constraint.referenced_columns),
                constraint_name=constraint.name,
                definition=constraint.definition,
                parent_table=parent,
            ))

        table.relations = self._deduplicate(relations)
        table.referenced_tables = self._referenced_tables(table.relations)
        return table.relations

    def _referenced_tables(self, relations: List[Relation]) -> List[str]:
        names = []
        for relation in relations:
            if relation.resolved and relation.parent_table not in names:
                names.append(relation.parent_table)
        return names

    def _deduplicate(self, relations: List[Relation]) -> List[Relation]:
        """Remove duplicate relations (same columns to the same target)."""
        seen: Set[Tuple[str, Tuple[str, ...], str, Tuple[str, ...]]] = set()
        unique = []

        for rel in relations:
            key = (rel.table, tuple(rel.columns), rel.referenced_table, tuple(rel.referenced_columns))
            if key not in seen:
                seen.add(key)
                unique.append(rel)

        return unique
