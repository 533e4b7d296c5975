"""Watch service: feeds raw file-system changes into the change coordinator."""

import asyncio
from pathlib import Path
from typing import Iterable, Optional, Set, Tuple

from loguru import logger
from watchfiles import Change, awatch

from content_collections.content import is_content_file
from content_collections.services.collection_service import CollectionService
from content_collections.sync.coordinator import ChangeEvent, ChangeKind
from content_collections.utils import normalize_path

_CHANGE_KINDS = {
    Change.added: ChangeKind.ADDED,
    Change.modified: ChangeKind.MODIFIED,
    Change.deleted: ChangeKind.DELETED,
}


class WatchService:
    """Watches every collection folder plus the collections file.

    Content changes become ChangeEvents for the coordinator, which owns the
    per-file debounce. Changes to the collections file are debounced here
    and trigger a configuration reload; when the set of watched folders
    changes as a result, the watcher restarts on the new set.
    """

    def __init__(self, service: CollectionService, watch_debounce_ms: int = 50):
        self.service = service
        self.watch_debounce_ms = watch_debounce_ms
        self._stopped = False
        self._watch_stop: Optional[asyncio.Event] = None
        self._reload_task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        """Watch until stop() is called."""
        while not self._stopped:
            self._watch_stop = asyncio.Event()
            paths = self.watch_paths()
            if not paths:
                logger.warning("Nothing to watch, waiting for a configuration change")
                await self._watch_stop.wait()
                continue

            logger.info(f"Watching {len(paths)} paths", paths=[str(p) for p in paths])
            async for changes in awatch(
                *paths,
                stop_event=self._watch_stop,
                debounce=self.watch_debounce_ms,
                recursive=True,
                ignore_permission_denied=True,
            ):
                await self.handle_changes(changes)

        logger.info("Watch service stopped")

    def stop(self) -> None:
        self._stopped = True
        if self._watch_stop is not None:
            self._watch_stop.set()

    def watch_paths(self) -> list[Path]:
        """Existing collection folders and the directory of the collections file."""
        paths = {store.collection.folder for store in self.service.stores.values()}
        paths.add(self.service.collections_path.parent)
        return sorted(p for p in paths if p.is_dir())

    async def handle_changes(self, changes: Iterable[Tuple[Change, str]]) -> None:
        """Translate one batch of raw changes."""
        config_path = normalize_path(self.service.collections_path)
        config_changed = False

        for change, raw_path in sorted(changes, key=lambda c: c[1]):
            path = normalize_path(raw_path)
            if path == config_path:
                config_changed = True
                continue
            if not is_content_file(path):
                continue
            await self.service.coordinator.notify(ChangeEvent(path=path, kind=_CHANGE_KINDS[change]))

        if config_changed:
            await self._schedule_config_reload()

    async def _schedule_config_reload(self) -> None:
        # Cancel existing debounce task
        if self._reload_task and not self._reload_task.done():
            self._reload_task.cancel()
            try:
                await self._reload_task
            except asyncio.CancelledError:
                pass

        # Start new debounce
        self._reload_task = asyncio.create_task(self._debounced_reload())

    async def _debounced_reload(self) -> None:
        try:
            await asyncio.sleep(self.service.config.debounce_seconds)
        except asyncio.CancelledError:
            return

        before: Set[Path] = set(self.watch_paths())
        logger.info("Collections file changed, reloading", path=str(self.service.collections_path))
        applied = await self.service.reload_config()
        if applied and set(self.watch_paths()) != before and self._watch_stop is not None:
            logger.info("Watched folders changed, restarting watcher")
            self._watch_stop.set()
