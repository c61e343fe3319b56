"""
Diff engine.

Compares a freshly built set of entities against the stored snapshot of a
scope and produces an ordered list of change records.

Ordering guarantees:
- Created and Updated records come first, parents before children, so a
  table is always created before its columns.
- Deleted records come last, children before parents, so columns are always
  detached before their table disappears.
"""

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from catalogsync.models import (
    CatalogEntity,
    ChangeRecord,
    Snapshot,
    is_within,
)

logger = logging.getLogger(__name__)


class DiffEngine:
    """Computes the minimal change set between two states of one scope."""

    def diff(
        self,
        old_snapshot: Snapshot,
        new_entities: Iterable[CatalogEntity],
        *,
        listing_complete: bool = True,
        retained: Sequence[str] = (),
    ) -> List[ChangeRecord]:
        """
        Diff the stored snapshot against the entities read this cycle.

        Args:
            old_snapshot: Last committed state of the scope
            new_entities: Every entity successfully read this cycle
            listing_complete: Whether the full table list was enumerated; deletions
                are only inferred when it was
            retained: Qualified names of tables that were listed but not read; they
                and their columns are never reported as deleted

        Returns:
            Ordered change records
        """
        new_by_name: Dict[str, CatalogEntity] = {e.qualified_name: e for e in new_entities}

        upserts: List[ChangeRecord] = []
        for qualified_name, entity in new_by_name.items():
            previous = old_snapshot.get(qualified_name)
            if previous is None:
                upserts.append(ChangeRecord.created(entity))
                continue
            changed = self.changed_fields(previous, entity)
            if changed:
                upserts.append(ChangeRecord.updated(entity, changed))

        deletes: List[ChangeRecord] = []
        if listing_complete:
            for entity in old_snapshot:
                if entity.qualified_name in new_by_name:
                    continue
                if any(is_within(entity.qualified_name, r) for r in retained):
                    continue
                deletes.append(ChangeRecord.deleted(entity))
        elif any(e.qualified_name not in new_by_name for e in old_snapshot):
            logger.info(
                f"Scope {old_snapshot.scope}: table list incomplete, "
                f"not inferring deletions this cycle"
            )

        upserts.sort(key=lambda r: (r.kind.depth, r.qualified_name))
        deletes.sort(key=lambda r: (-r.kind.depth, r.qualified_name))

        records = upserts + deletes
        for record in records:
            logger.debug(f"Change: {record}")
        return records

    @staticmethod
    def changed_fields(old: CatalogEntity, new: CatalogEntity) -> Tuple[str, ...]:
        """
        Names of the fields that differ between two states of one entity.

        A type change is always reported first. Attribute differences are
        reported per key as 'attributes.<key>'. created_at is ignored.
        """
        changed: List[str] = []
        if old.type_name != new.type_name:
            changed.append("type")
        if old.name != new.name:
            changed.append("name")
        keys = sorted(set(old.attributes) | set(new.attributes))
        for key in keys:
            if old.attributes.get(key) != new.attributes.get(key):
                changed.append(f"attributes.{key}")
        return tuple(changed)
