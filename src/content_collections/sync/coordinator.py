"""Debounced change coordination between file events and collection stores."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, Dict, Iterable, MutableMapping, Optional, Set, Tuple

from loguru import logger

from content_collections.store.collection_store import CollectionStore, belongs_to_folder
from content_collections.utils import normalize_path

DEFAULT_DEBOUNCE_SECONDS = 0.3


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    """A raw notification that a file may have changed.

    ``collection`` is optional; when it is missing the coordinator finds the
    owning collection(s) by folder containment. ``kind`` is informational
    only: it is logged, and the store re-reads the file to learn whether it
    still exists.
    """

    path: str
    kind: ChangeKind = ChangeKind.MODIFIED
    collection: Optional[str] = None


class ChangeCoordinator:
    """Turns bursts of change events into one invalidation per file.

    Every (collection, path) pair has its own debounce timer. A new event for
    a pair whose timer is still waiting cancels and restarts that timer;
    events for other pairs are unaffected. Once a timer fires, the rescan it
    starts is never cancelled by later events: a later event schedules a new
    rescan, and the store discards the older result.

    A schema change skips debouncing for its collection: pending file timers
    are dropped and the store is rebuilt in full.
    """

    def __init__(
        self,
        stores: MutableMapping[str, CollectionStore],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """Initialize the coordinator.

        Args:
            stores: Collection name -> store. Shared with the owner, who may
                add or remove stores while the coordinator runs.
            debounce_seconds: Quiet period before an invalidation fires
        """
        self.stores = stores
        self.debounce_seconds = debounce_seconds
        self._timers: Dict[Tuple[str, str], asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._stopped = False

    @property
    def pending(self) -> int:
        """Number of timers still waiting out their quiet period."""
        return len(self._timers)

    async def notify(self, event: ChangeEvent) -> None:
        """Record a change event and (re)start the debounce timer for it."""
        if self._stopped:
            logger.debug("Coordinator stopped, ignoring event", path=event.path)
            return

        path = normalize_path(event.path)
        for name in self._resolve_collections(event, path):
            key = (name, path)

            # Cancel existing debounce task
            existing = self._timers.pop(key, None)
            if existing is not None and not existing.done():
                existing.cancel()
                try:
                    await existing
                except asyncio.CancelledError:
                    pass

            # Start new debounce
            task = asyncio.create_task(self._debounced_rescan(key, event.kind))
            self._timers[key] = task
            self._track(task)

    async def notify_schema_changed(self, names: Optional[Iterable[str]] = None) -> None:
        """Fully rebuild the given collections (all when ``names`` is None)."""
        targets = list(self.stores) if names is None else [n for n in names if n in self.stores]
        for name in targets:
            for key in [k for k in self._timers if k[0] == name]:
                self._timers.pop(key).cancel()
            logger.info("Schema changed, scheduling full rebuild", collection=name)
            self._track(asyncio.create_task(self._rebuild(name)))

    async def run(self, events: AsyncIterable[ChangeEvent]) -> None:
        """Consume an event channel until it ends or the coordinator stops."""
        async for event in events:
            if self._stopped:
                break
            await self.notify(event)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no invalidation is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending timers and running invalidations."""
        self._stopped = True
        self._timers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Change coordinator stopped", cancelled=len(tasks))

    # --- Internals ---

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _resolve_collections(self, event: ChangeEvent, path: str) -> list[str]:
        if event.collection is not None:
            if event.collection in self.stores:
                return [event.collection]
            logger.debug("Event for unknown collection", collection=event.collection, path=path)
            return []

        names = [
            name
            for name, store in self.stores.items()
            if belongs_to_folder(path, store.collection.folder)
        ]
        if not names:
            logger.debug("Event outside every collection folder", path=path)
        return names

    async def _debounced_rescan(self, key: Tuple[str, str], kind: ChangeKind) -> None:
        """Wait for the quiet period, then rescan the file."""
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            return

        # Fired: from here on a new event starts a new timer instead of cancelling this one
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]

        name, path = key
        store = self.stores.get(name)
        if store is None:
            return

        logger.debug("Debounce elapsed, rescanning", collection=name, path=path, kind=kind.value)
        try:
            await store.rescan(path)
        except Exception as e:
            logger.error(f"Error rescanning {path} in collection {name}: {e}")

    async def _rebuild(self, name: str) -> None:
        store = self.stores.get(name)
        if store is None:
            return
        try:
            await store.rebuild()
        except Exception as e:
            logger.error(f"Error rebuilding collection {name}: {e}")
