"""In-memory collection stores with copy-on-write snapshots."""

from content_collections.store.collection_store import (
    CollectionStore,
    InvalidationScope,
    assemble_snapshot,
    belongs_to_folder,
    list_content_files,
)
from content_collections.store.snapshot import CollectionSnapshot, empty_snapshot

__all__ = [
    "CollectionSnapshot",
    "CollectionStore",
    "InvalidationScope",
    "assemble_snapshot",
    "belongs_to_folder",
    "empty_snapshot",
    "list_content_files",
]
