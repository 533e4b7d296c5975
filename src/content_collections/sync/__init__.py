"""Change detection: debounced coordination and the file watcher."""

from content_collections.sync.coordinator import ChangeCoordinator, ChangeEvent, ChangeKind

__all__ = ["ChangeCoordinator", "ChangeEvent", "ChangeKind"]
