"""Service tying configuration, stores and the change coordinator together."""

import asyncio
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from content_collections.config import ContentCollectionsConfig, LoadedCollections, load_collections_file
from content_collections.content import read_content_file
from content_collections.errors import (
    CollectionNotFoundError,
    CollectionUnavailableError,
    ConfigurationError,
    ContentParseError,
    IdentifierError,
    SchemaConfigError,
)
from content_collections.identifiers import resolve_identifier
from content_collections.models import Item
from content_collections.query.parser import parse_query
from content_collections.query.serializer import to_query_string
from content_collections.schema.validator import (
    ValidationError,
    ValidationErrorKind,
    ValidationResult,
    item_error,
)
from content_collections.schemas.collection import (
    CollectionSummary,
    CollectionValidationReport,
    QueryPage,
)
from content_collections.store.collection_store import CollectionStore
from content_collections.sync.coordinator import ChangeCoordinator
from content_collections.utils import FilePath


class CollectionService:
    """Entry point for everything a caller does with collections.

    Collections whose configuration failed to load are kept as
    "unavailable" with their error; the others are served normally.
    """

    def __init__(self, config: ContentCollectionsConfig):
        self.config = config
        self.content_root: Path = config.content_root
        self.stores: Dict[str, CollectionStore] = {}
        self.unavailable: Dict[str, SchemaConfigError] = {}
        self.coordinator = ChangeCoordinator(self.stores, debounce_seconds=config.debounce_seconds)

    @property
    def collections_path(self) -> Path:
        return self.config.collections_path

    # --- Loading ---

    async def load(self) -> None:
        """Read the collections file and run the initial scan of every collection.

        Raises:
            ConfigurationError: If the collections file cannot be read at all.
        """
        loaded = await asyncio.to_thread(
            load_collections_file, self.collections_path, self.config.content_root
        )
        self.content_root = loaded.content_root
        self.unavailable.clear()
        self.unavailable.update(loaded.errors)

        for name, collection in loaded.collections.items():
            self.stores[name] = CollectionStore(collection, self.config)

        await asyncio.gather(*(store.rebuild() for store in self.stores.values()))
        logger.info(
            "Collections loaded",
            available=sorted(self.stores),
            unavailable=sorted(self.unavailable),
        )

    async def reload_config(self) -> bool:
        """Re-read the collections file and apply what changed.

        Unchanged collections keep their stores untouched; changed ones are
        rebuilt against the new definition; removed ones are dropped. A file
        that cannot be read leaves the current state in place.

        Returns:
            True if the new configuration was applied.
        """
        try:
            loaded = await asyncio.to_thread(
                load_collections_file, self.collections_path, self.config.content_root
            )
        except ConfigurationError as e:
            logger.error(f"Keeping current collections, reload failed: {e}")
            return False

        rebuilds = self._apply(loaded)
        await asyncio.gather(*rebuilds)
        return True

    def _apply(self, loaded: LoadedCollections) -> list:
        self.content_root = loaded.content_root
        rebuilds = []

        for name in list(self.stores):
            if name not in loaded.collections:
                logger.info("Collection removed or unavailable", collection=name)
                del self.stores[name]

        self.unavailable.clear()
        self.unavailable.update(loaded.errors)

        for name, collection in loaded.collections.items():
            store = self.stores.get(name)
            if store is None:
                logger.info("Collection added", collection=name)
                store = CollectionStore(collection, self.config)
                self.stores[name] = store
                rebuilds.append(store.rebuild())
            elif store.collection != collection:
                rebuilds.append(store.replace_collection(collection))
            else:
                logger.debug("Collection unchanged", collection=name)
        return rebuilds

    async def close(self) -> None:
        await self.coordinator.stop()

    # --- Lookup ---

    def get_store(self, name: str) -> CollectionStore:
        """Return the store for a collection.

        Raises:
            CollectionUnavailableError: If its configuration failed to load.
            CollectionNotFoundError: If no such collection is configured.
        """
        store = self.stores.get(name)
        if store is not None:
            return store
        if name in self.unavailable:
            raise CollectionUnavailableError(name, str(self.unavailable[name]))
        raise CollectionNotFoundError(name)

    def list_collections(self) -> list[CollectionSummary]:
        summaries = []
        for name in sorted(set(self.stores) | set(self.unavailable)):
            store = self.stores.get(name)
            if store is None:
                summaries.append(
                    CollectionSummary(name=name, available=False, error=str(self.unavailable[name]))
                )
                continue
            snapshot = store.snapshot
            summaries.append(
                CollectionSummary(
                    name=name,
                    folder=store.collection.folder.as_posix(),
                    description=store.collection.description,
                    available=True,
                    item_count=len(snapshot.items),
                    invalid_count=len(snapshot.invalid_items),
                    version=snapshot.version,
                    fields=store.collection.schema.field_names,
                )
            )
        return summaries

    def get_item(self, name: str, identifier: str) -> Optional[Item]:
        return self.get_store(name).get_by_identifier(identifier)

    # --- Queries ---

    def query(self, name: str, query_string: str) -> QueryPage:
        """Parse and run a query against one collection.

        Raises:
            QueryError: If the query does not parse against the collection schema.
        """
        store = self.get_store(name)
        expression = parse_query(
            query_string, store.collection.schema, max_page_size=self.config.max_page_size
        )
        result = store.query(expression)
        logger.info(
            "Query executed",
            collection=name,
            query=query_string,
            total_count=result.total_count,
            returned=result.returned,
        )
        return QueryPage(
            collection=name,
            query=to_query_string(expression),
            items=[item.to_dict(include_body=expression.select is None) for item in result.items],
            total_count=result.total_count,
            offset=result.offset,
            page_size=result.page_size,
        )

    # --- Validation ---

    def validate(self, name: str, metadata: Mapping[str, Any]) -> ValidationResult:
        """Validate candidate metadata against a collection's schema."""
        return self.get_store(name).validate(metadata)

    async def validate_file(self, name: str, path: FilePath) -> ValidationResult:
        """Validate a file that is not (yet) part of the collection.

        Runs the same parsing, identifier and schema checks a scan would,
        plus a check that the identifier is not taken by another file.
        """
        store = self.get_store(name)
        path = Path(path)
        try:
            parsed = await read_content_file(path, self.config.max_file_size_bytes)
        except ContentParseError as e:
            return item_error(ValidationErrorKind(e.kind), str(e))

        result = store.validate(parsed.metadata)
        try:
            identifier = resolve_identifier(
                parsed.declared_slug, path.name, strip_date_prefix=self.config.strip_date_prefix
            )
        except IdentifierError as e:
            return result.with_error(
                ValidationError(
                    field="slug", kind=ValidationErrorKind.INVALID_IDENTIFIER, message=str(e)
                )
            )

        existing = store.get_by_identifier(identifier)
        if existing is not None and Path(existing.path) != path.resolve():
            result = result.with_error(
                ValidationError(
                    field="",
                    kind=ValidationErrorKind.DUPLICATE_IDENTIFIER,
                    message=f"Identifier '{identifier}' is already used by {existing.path}",
                    actual_value=identifier,
                )
            )
        return result

    def validation_report(self, name: str) -> CollectionValidationReport:
        return self.get_store(name).validation_report()
