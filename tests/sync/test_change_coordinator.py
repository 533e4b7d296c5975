"""Tests for the debounced change coordinator."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from content_collections.store.collection_store import CollectionStore
from content_collections.sync.coordinator import ChangeCoordinator, ChangeEvent, ChangeKind
from content_collections.utils import normalize_path

from conftest import write_markdown

DEBOUNCE = 0.05


def mock_store(folder: Path) -> MagicMock:
    store = MagicMock(spec=CollectionStore)
    store.collection.folder = folder.resolve()
    store.rescan = AsyncMock()
    store.rebuild = AsyncMock(return_value=True)
    return store


@pytest.fixture
def store(posts_folder):
    return mock_store(posts_folder)


@pytest.fixture
def coordinator(store):
    return ChangeCoordinator({"posts": store}, debounce_seconds=DEBOUNCE)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_collapses_to_one_rescan(self, coordinator, store, posts_folder):
        path = posts_folder / "a.md"
        for _ in range(5):
            await coordinator.notify(ChangeEvent(path=str(path)))

        assert coordinator.pending == 1
        await coordinator.wait_idle()

        store.rescan.assert_awaited_once_with(normalize_path(path))
        assert coordinator.pending == 0

    @pytest.mark.asyncio
    async def test_paths_debounce_independently(self, coordinator, store, posts_folder):
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "b.md"), kind=ChangeKind.ADDED))
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))

        await coordinator.wait_idle()

        rescanned = sorted(call.args[0] for call in store.rescan.await_args_list)
        assert rescanned == [
            normalize_path(posts_folder / "a.md"),
            normalize_path(posts_folder / "b.md"),
        ]

    @pytest.mark.asyncio
    async def test_event_after_quiet_period_rescans_again(self, coordinator, store, posts_folder):
        path = str(posts_folder / "a.md")
        await coordinator.notify(ChangeEvent(path=path))
        await coordinator.wait_idle()
        await coordinator.notify(ChangeEvent(path=path, kind=ChangeKind.DELETED))
        await coordinator.wait_idle()

        assert store.rescan.await_count == 2

    @pytest.mark.asyncio
    async def test_nothing_fires_before_quiet_period(self, coordinator, store, posts_folder):
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))
        await asyncio.sleep(DEBOUNCE / 5)
        store.rescan.assert_not_awaited()
        await coordinator.wait_idle()
        store.rescan.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rescan_errors_are_contained(self, coordinator, store, posts_folder):
        store.rescan.side_effect = RuntimeError("boom")
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))
        await coordinator.wait_idle()
        store.rescan.assert_awaited_once()


class TestRouting:
    @pytest.mark.asyncio
    async def test_path_outside_every_folder_is_ignored(self, coordinator, store, content_root):
        await coordinator.notify(ChangeEvent(path=str(content_root / "other" / "a.md")))
        assert coordinator.pending == 0
        await coordinator.wait_idle()
        store.rescan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_collection(self, coordinator, store, content_root):
        # an explicit collection skips the folder check
        await coordinator.notify(ChangeEvent(path=str(content_root / "a.md"), collection="posts"))
        await coordinator.wait_idle()
        store.rescan.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_collection_is_ignored(self, coordinator, store, posts_folder):
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md"), collection="pages"))
        await coordinator.wait_idle()
        store.rescan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_path_in_two_collections(self, store, posts_folder):
        nested = posts_folder / "nested"
        nested.mkdir()
        inner = mock_store(nested)
        coordinator = ChangeCoordinator({"posts": store, "nested": inner}, debounce_seconds=DEBOUNCE)

        await coordinator.notify(ChangeEvent(path=str(nested / "a.md")))
        await coordinator.wait_idle()

        store.rescan.assert_awaited_once()
        inner.rescan.assert_awaited_once()


class TestSchemaChanges:
    @pytest.mark.asyncio
    async def test_schema_change_drops_pending_timers_and_rebuilds(
        self, coordinator, store, posts_folder
    ):
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))
        assert coordinator.pending == 1

        await coordinator.notify_schema_changed(["posts"])
        await coordinator.wait_idle()

        store.rebuild.assert_awaited_once()
        store.rescan.assert_not_awaited()
        assert coordinator.pending == 0

    @pytest.mark.asyncio
    async def test_schema_change_for_all_collections(self, coordinator, store):
        await coordinator.notify_schema_changed()
        await coordinator.wait_idle()
        store.rebuild.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_collection_names_are_skipped(self, coordinator, store):
        await coordinator.notify_schema_changed(["pages"])
        await coordinator.wait_idle()
        store.rebuild.assert_not_awaited()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_run_consumes_event_channel(self, coordinator, store, posts_folder):
        async def events():
            for name in ("a.md", "b.md", "a.md"):
                yield ChangeEvent(path=str(posts_folder / name))

        await coordinator.run(events())
        await coordinator.wait_idle()

        assert store.rescan.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_work(self, coordinator, store, posts_folder):
        await coordinator.notify(ChangeEvent(path=str(posts_folder / "a.md")))
        await coordinator.stop()

        await coordinator.notify(ChangeEvent(path=str(posts_folder / "b.md")))
        await asyncio.sleep(DEBOUNCE * 2)

        store.rescan.assert_not_awaited()
        assert coordinator.pending == 0


class TestWithRealStore:
    @pytest.mark.asyncio
    async def test_new_file_becomes_visible(self, posts_collection, config, posts_folder):
        store = CollectionStore(posts_collection, config)
        await store.rebuild()
        coordinator = ChangeCoordinator({"posts": store}, debounce_seconds=DEBOUNCE)

        path = write_markdown(posts_folder, "hello.md", "title: Hello\npublishDate: 2024-01-01")
        await coordinator.notify(ChangeEvent(path=str(path), kind=ChangeKind.ADDED))
        assert store.get_by_identifier("hello") is None

        await coordinator.wait_idle()
        assert store.get_by_identifier("hello").metadata["title"] == "Hello"

        path.unlink()
        await coordinator.notify(ChangeEvent(path=str(path), kind=ChangeKind.DELETED))
        await coordinator.wait_idle()
        assert store.get_by_identifier("hello") is None

    @pytest.mark.asyncio
    async def test_delete_event_for_existing_file_keeps_item(
        self, posts_collection, config, posts_folder
    ):
        path = write_markdown(posts_folder, "kept.md", "title: Kept\npublishDate: 2024-01-01")
        store = CollectionStore(posts_collection, config)
        await store.rebuild()
        coordinator = ChangeCoordinator({"posts": store}, debounce_seconds=DEBOUNCE)

        # Atomic saves can report a delete for a file that is back in place
        await coordinator.notify(ChangeEvent(path=str(path), kind=ChangeKind.DELETED))
        await coordinator.wait_idle()

        assert store.get_by_identifier("kept").metadata["title"] == "Kept"
