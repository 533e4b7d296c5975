"""Immutable point-in-time views of a collection."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from loguru import logger

from content_collections.models import Item
from content_collections.schema.model import Collection, FieldKind

# Field kinds whose values are hashable scalars and can back an equality index
INDEXABLE_KINDS = frozenset({FieldKind.STRING, FieldKind.NUMBER, FieldKind.BOOLEAN})


@dataclass(frozen=True)
class CollectionSnapshot:
    """Everything a reader needs, captured at one version.

    Apart from the equality indexes, which are built lazily on first lookup
    and only ever added to, a snapshot is never modified after it is
    published. Readers that hold a reference keep a consistent view even
    while the store swaps in newer snapshots.

    Attributes:
        version: Monotonic per-store version, 0 before the first scan
        collection: Collection definition the items were validated against
        entries: Every scanned item keyed by path, valid or not
        items: Served items (valid, non-duplicate), in path order
        by_identifier: Served items keyed by identifier
        invalid_items: Items excluded from serving, in path order
        built_at: When the snapshot was assembled
    """

    version: int
    collection: Collection
    entries: Mapping[str, Item]
    items: tuple[Item, ...]
    by_identifier: Mapping[str, Item]
    invalid_items: tuple[Item, ...] = ()
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _field_indexes: dict[str, dict[Any, tuple[Item, ...]]] = field(
        default_factory=dict, repr=False, compare=False
    )

    def __len__(self) -> int:
        return len(self.items)

    def get(self, identifier: str) -> Optional[Item]:
        return self.by_identifier.get(identifier)

    def field_index(self, name: str) -> Optional[Mapping[Any, tuple[Item, ...]]]:
        """Equality index for a scalar field, built on first use.

        Returns None for fields that cannot be indexed. Each bucket keeps
        the served order, so narrowing through the index never reorders
        results. Indexes live and die with their snapshot.
        """
        if name in self._field_indexes:
            return self._field_indexes[name]

        definition = self.collection.schema.field(name)
        if definition is None or definition.kind not in INDEXABLE_KINDS:
            return None

        buckets: dict[Any, list[Item]] = {}
        for item in self.items:
            value = item.metadata.get(name)
            if value is None:
                continue
            buckets.setdefault(value, []).append(item)

        index = {value: tuple(bucket) for value, bucket in buckets.items()}
        self._field_indexes[name] = index
        logger.debug(
            "Built field index",
            collection=self.collection.name,
            field=name,
            version=self.version,
            keys=len(index),
        )
        return index


def empty_snapshot(collection: Collection) -> CollectionSnapshot:
    """The snapshot a store serves before its first scan."""
    return CollectionSnapshot(
        version=0,
        collection=collection,
        entries={},
        items=(),
        by_identifier={},
    )
