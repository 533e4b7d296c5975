"""Collection store: the validated item set of one collection.

Concurrency model (single process, asyncio):

- Readers take ``store.snapshot`` (or call the read helpers, which do) and
  work on that immutable object. They never wait for writers.
- Writers build a new CollectionSnapshot and publish it with a single
  attribute assignment. The step from "read current snapshot" to "publish
  new snapshot" contains no ``await``, so two writers cannot interleave
  inside it.
- A full rebuild is tagged with a generation number. Starting a newer
  rebuild makes the older one stop before it publishes; a snapshot that was
  already published is only ever replaced, never rolled back.
- Targeted rescans that happen while a rebuild is scanning are applied
  immediately and replayed once the rebuild publishes, so the rebuild's
  older read of that file never wins.
"""

import asyncio
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from loguru import logger

from content_collections.config import ContentCollectionsConfig
from content_collections.content import is_content_file, read_content_file
from content_collections.errors import ContentParseError, IdentifierError
from content_collections.identifiers import identifier_from_filename, resolve_identifier
from content_collections.models import Item
from content_collections.query.ast import And, Comparison, ComparisonOperator, FilterNode, QueryExpression
from content_collections.query.executor import QueryResult, execute_query
from content_collections.query.parser import parse_query
from content_collections.schema.model import Collection
from content_collections.schema.validator import (
    ITEM_LEVEL_ERROR_KINDS,
    ValidationError,
    ValidationErrorKind,
    ValidationResult,
    item_error,
    validate_metadata,
)
from content_collections.schemas.collection import CollectionValidationReport, ItemValidationErrors
from content_collections.store.snapshot import INDEXABLE_KINDS, CollectionSnapshot, empty_snapshot
from content_collections.utils import FilePath, is_within, normalize_path

# Upper bound on files read concurrently during a full rebuild
SCAN_CONCURRENCY = 16


class InvalidationScope(str, Enum):
    ALL = "all"


class CollectionStore:
    """Owns the snapshots of one collection and the work that produces them."""

    def __init__(self, collection: Collection, config: Optional[ContentCollectionsConfig] = None):
        self.config = config or ContentCollectionsConfig()
        self._collection = collection
        self._snapshot = empty_snapshot(collection)
        self._version = 0

        # Rebuild bookkeeping
        self._generation = 0
        self._rebuilding: Optional[int] = None
        self._rescanned_during_rebuild: set[str] = set()

        # Latest rescan ticket per path; an older rescan never overwrites a newer one
        self._rescan_tickets: dict[str, int] = {}

    # --- Read side ---

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def snapshot(self) -> CollectionSnapshot:
        """The currently published snapshot."""
        return self._snapshot

    @property
    def is_rebuilding(self) -> bool:
        return self._rebuilding is not None

    def get_all(self) -> tuple[Item, ...]:
        """All served items in path order."""
        return self._snapshot.items

    def get_by_identifier(self, identifier: str) -> Optional[Item]:
        return self._snapshot.get(identifier)

    def query(self, expression: Union[QueryExpression, str]) -> QueryResult:
        """Run a query against the current snapshot.

        A query string is parsed against this collection's schema first.

        Raises:
            QueryError: If a query string does not parse.
        """
        snapshot = self._snapshot
        if isinstance(expression, str):
            expression = parse_query(
                expression, snapshot.collection.schema, max_page_size=self.config.max_page_size
            )

        candidates = self._candidates(snapshot, expression.filter)
        return execute_query(expression, candidates, snapshot.collection.schema)

    def _candidates(self, snapshot: CollectionSnapshot, node: Optional[FilterNode]) -> tuple[Item, ...]:
        """Narrow the items to scan using an equality index when the filter allows it.

        Only a top-level ``field eq literal`` that every match must satisfy
        (the root, or a conjunct of a root ``and`` chain) is used. The
        executor still evaluates the complete filter on the narrowed set.
        """
        for comparison in _required_comparisons(node):
            if (
                comparison.operator != ComparisonOperator.EQ
                or comparison.case_insensitive
                or comparison.field.index is not None
            ):
                continue
            definition = snapshot.collection.schema.field(comparison.field.name)
            if definition is None or definition.kind not in INDEXABLE_KINDS:
                continue
            index = snapshot.field_index(comparison.field.name)
            if index is not None:
                return index.get(comparison.value, ())
        return snapshot.items

    def validate(self, metadata: Mapping[str, Any]) -> ValidationResult:
        """Validate metadata against this collection's schema without storing anything."""
        return validate_metadata(self._collection.schema, metadata)

    def validation_report(self) -> CollectionValidationReport:
        """Summarize the invalid items of the current snapshot."""
        snapshot = self._snapshot
        return CollectionValidationReport(
            collection=snapshot.collection.name,
            version=snapshot.version,
            total_files=len(snapshot.entries),
            valid_count=len(snapshot.items),
            invalid_count=len(snapshot.invalid_items),
            items=[
                ItemValidationErrors(
                    identifier=item.identifier,
                    path=item.path,
                    errors=[e.to_dict() for e in item.validation.errors],
                    warnings=[w.to_dict() for w in item.validation.warnings],
                )
                for item in snapshot.invalid_items
            ],
            generated_at=snapshot.built_at,
        )

    # --- Write side ---

    async def invalidate(self, scope: Union[InvalidationScope, FilePath] = InvalidationScope.ALL) -> None:
        """Bring the store up to date for ``scope``.

        Args:
            scope: ``InvalidationScope.ALL`` (or "all") for a full rebuild, or
                a file path for a targeted rescan.
        """
        if scope == InvalidationScope.ALL:
            await self.rebuild()
        else:
            await self.rescan(scope)

    async def replace_collection(self, collection: Collection) -> bool:
        """Switch to a new definition (schema or folder) and rebuild from scratch."""
        logger.info("Collection definition changed, rebuilding", collection=collection.name)
        self._collection = collection
        return await self.rebuild()

    async def rebuild(self) -> bool:
        """Rescan every file in the collection folder and publish a new snapshot.

        Returns:
            True if the snapshot was published, False if a newer rebuild
            superseded this one first.
        """
        self._generation += 1
        generation = self._generation
        collection = self._collection
        self._rebuilding = generation
        self._rescanned_during_rebuild = set()

        logger.info(
            "Starting full rebuild",
            collection=collection.name,
            folder=str(collection.folder),
            generation=generation,
        )

        try:
            paths = await asyncio.to_thread(list_content_files, collection.folder)
            previous = self._snapshot
            semaphore = asyncio.Semaphore(SCAN_CONCURRENCY)

            async def scan(path: str) -> tuple[str, Optional[Item]]:
                async with semaphore:
                    if generation != self._generation:
                        return path, None
                    try:
                        return path, await self._scan_file(path, collection)
                    except FileNotFoundError:
                        return path, None
                    except OSError as e:
                        kept = previous.entries.get(path)
                        logger.warning(
                            "Transient read error, keeping previous item",
                            collection=collection.name,
                            path=path,
                            error=str(e),
                            kept=kept is not None,
                        )
                        if kept is not None and previous.collection.schema != collection.schema:
                            kept = revalidate_item(kept, collection)
                        return path, kept

            results = await asyncio.gather(*(scan(path) for path in paths))

            if generation != self._generation:
                logger.info(
                    "Rebuild superseded before publish",
                    collection=collection.name,
                    generation=generation,
                    current=self._generation,
                )
                return False

            entries = {path: item for path, item in results if item is not None}
            version = self._next_version()
            # Items kept from the previous snapshot keep their revision
            entries = {
                path: item if previous.entries.get(path) is item else replace(item, revision=version)
                for path, item in entries.items()
            }
            self._publish(
                assemble_snapshot(version, collection, entries, incumbents=previous.by_identifier)
            )
            replay = sorted(self._rescanned_during_rebuild)
        finally:
            if self._rebuilding == generation:
                self._rebuilding = None

        logger.info(
            "Rebuild published",
            collection=collection.name,
            version=self._snapshot.version,
            items=len(self._snapshot.items),
            invalid=len(self._snapshot.invalid_items),
        )

        for path in replay:
            await self.rescan(path)
        return True

    async def rescan(self, path: FilePath) -> None:
        """Re-read one file and replace (or remove) only its entry."""
        key = normalize_path(path)
        collection = self._collection

        ticket = self._rescan_tickets.get(key, 0) + 1
        self._rescan_tickets[key] = ticket

        if self._rebuilding is not None:
            self._rescanned_during_rebuild.add(key)

        removed = False
        item: Optional[Item] = None
        if not belongs_to_folder(key, collection.folder):
            removed = True
        else:
            try:
                item = await self._scan_file(key, collection)
            except FileNotFoundError:
                removed = True
            except OSError as e:
                logger.warning(
                    "Transient read error, keeping previous item",
                    collection=collection.name,
                    path=key,
                    error=str(e),
                )
                return

        if self._rescan_tickets.get(key) != ticket:
            logger.debug("Dropping stale rescan", collection=collection.name, path=key)
            return
        if collection is not self._collection:
            # The definition changed mid-scan; the rebuild it triggered covers this path
            return

        # --- Publish (no awaits from here on) ---
        base = self._snapshot
        if removed and key not in base.entries:
            return

        entries = dict(base.entries)
        version = self._next_version()
        if removed:
            del entries[key]
            logger.info("Removed item", collection=collection.name, path=key, version=version)
        else:
            entries[key] = replace(item, revision=version)
            logger.debug(
                "Rescanned item",
                collection=collection.name,
                path=key,
                identifier=item.identifier,
                valid=item.is_valid,
                version=version,
            )
        self._publish(
            assemble_snapshot(version, collection, entries, incumbents=base.by_identifier)
        )

    # --- Internals ---

    def _next_version(self) -> int:
        self._version += 1
        return self._version

    def _publish(self, snapshot: CollectionSnapshot) -> None:
        self._snapshot = snapshot

    async def _scan_file(self, path: str, collection: Collection) -> Item:
        """Turn one file into an Item.

        Content and identifier problems become validation errors on the
        returned item. Only OSError escapes, so the caller can tell a
        deleted file from a transient failure.
        """
        filename = Path(path).name
        try:
            parsed = await asyncio.wait_for(
                read_content_file(path, self.config.max_file_size_bytes),
                timeout=self.config.item_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Item processing timed out",
                collection=collection.name,
                path=path,
                timeout=self.config.item_timeout_seconds,
            )
            return self._failed_item(
                path,
                item_error(
                    ValidationErrorKind.PROCESSING_TIMEOUT,
                    f"Processing exceeded {self.config.item_timeout_seconds}s",
                ),
            )
        except ContentParseError as e:
            logger.warning(
                "Content file could not be parsed",
                collection=collection.name,
                path=path,
                error=str(e),
            )
            kind = ValidationErrorKind(e.kind)
            return self._failed_item(path, item_error(kind, str(e)))

        validation = validate_metadata(collection.schema, parsed.metadata)

        try:
            identifier = resolve_identifier(
                parsed.declared_slug, filename, strip_date_prefix=self.config.strip_date_prefix
            )
        except IdentifierError as e:
            identifier = filename
            validation = validation.with_error(
                ValidationError(
                    field="slug",
                    kind=ValidationErrorKind.INVALID_IDENTIFIER,
                    message=str(e),
                    actual_value=parsed.declared_slug,
                )
            )

        return Item(
            identifier=identifier,
            path=path,
            metadata=parsed.metadata,
            validation=validation,
            body=parsed.body,
            modified_at=parsed.modified_at,
        )

    def _failed_item(self, path: str, validation: ValidationResult) -> Item:
        filename = Path(path).name
        identifier = (
            identifier_from_filename(filename, strip_date_prefix=self.config.strip_date_prefix)
            or filename
        )
        return Item(identifier=identifier, path=path, metadata={}, validation=validation)


# --- Snapshot assembly ---


def assemble_snapshot(
    version: int,
    collection: Collection,
    entries: Mapping[str, Item],
    incumbents: Optional[Mapping[str, Item]] = None,
) -> CollectionSnapshot:
    """Build a snapshot from scanned entries.

    Valid items are served in path order. An identifier already served by
    ``incumbents`` (the previous snapshot) stays with that file as long as
    it still resolves to it and is valid. Otherwise, when several valid
    items resolve to the same identifier, the first path wins. The others
    are excluded with a duplicate-identifier error. Served Item objects are
    the entry objects themselves, so unchanged files keep their identity.
    """
    ordered = sorted(entries.items())

    # --- Decide which path owns each identifier ---
    owners: dict[str, str] = {}
    for identifier, incumbent in (incumbents or {}).items():
        current = entries.get(incumbent.path)
        if current is not None and current.is_valid and current.identifier == identifier:
            owners[identifier] = incumbent.path
    for path, item in ordered:
        if item.is_valid:
            owners.setdefault(item.identifier, path)

    served: list[Item] = []
    by_identifier: dict[str, Item] = {}
    invalid: list[Item] = []

    for path, item in ordered:
        if not item.is_valid:
            invalid.append(item)
            continue
        owner = owners[item.identifier]
        if owner != path:
            error = ValidationError(
                field="",
                kind=ValidationErrorKind.DUPLICATE_IDENTIFIER,
                message=f"Identifier '{item.identifier}' is already used by {owner}",
                actual_value=item.identifier,
            )
            invalid.append(replace(item, validation=item.validation.with_error(error)))
            continue
        by_identifier[item.identifier] = item
        served.append(item)

    return CollectionSnapshot(
        version=version,
        collection=collection,
        entries=dict(ordered),
        items=tuple(served),
        by_identifier=by_identifier,
        invalid_items=tuple(invalid),
    )


def revalidate_item(item: Item, collection: Collection) -> Item:
    """Validate a kept item's metadata against a (new) collection schema.

    Item-level errors such as a parse failure are carried over, since they
    do not depend on the schema.
    """
    validation = validate_metadata(collection.schema, item.metadata)
    for error in item.validation.errors:
        if error.kind in ITEM_LEVEL_ERROR_KINDS:
            validation = validation.with_error(error)
    return replace(item, validation=validation)


def list_content_files(folder: FilePath) -> list[str]:
    """List content files under ``folder`` as normalized paths, in path order.

    Hidden directories are skipped, as are files that resolve outside the
    folder (symlinks pointing elsewhere).
    """
    root = Path(folder)
    if not root.is_dir():
        logger.warning("Collection folder does not exist", folder=str(root))
        return []

    paths: list[str] = []
    for path in root.rglob("*"):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts[:-1]):
            continue
        if not is_content_file(path) or not path.is_file():
            continue
        if not is_within(path, root):
            logger.warning("Skipping file outside collection folder", path=str(path))
            continue
        paths.append(normalize_path(path))
    return sorted(set(paths))


def belongs_to_folder(path: FilePath, folder: FilePath) -> bool:
    """Check whether a (possibly deleted) path is a content file of ``folder``.

    Mirrors the rules of list_content_files: inside the folder after
    resolving symlinks, no hidden directory on the way, supported extension.
    """
    if not is_content_file(path) or not is_within(path, folder):
        return False
    relative = Path(path).resolve().relative_to(Path(folder).resolve())
    return not any(part.startswith(".") for part in relative.parts[:-1])


def _required_comparisons(node: Optional[FilterNode]) -> list[Comparison]:
    """Comparisons every match must satisfy: the root, or conjuncts of a root ``and`` chain."""
    if node is None:
        return []
    if isinstance(node, Comparison):
        return [node]
    if isinstance(node, And):
        return _required_comparisons(node.left) + _required_comparisons(node.right)
    return []
