"""Configuration management for content collections.

Two layers:

- ``ContentCollectionsConfig``: process settings (paths, timings, limits),
  read from ``CONTENT_COLLECTIONS_*`` environment variables.
- The collections file: which collections exist, where their folders are
  and what schema governs them. JSON by default, YAML when the file ends
  in ``.yaml``/``.yml``.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from content_collections.content import DEFAULT_MAX_FILE_SIZE_BYTES
from content_collections.errors import ConfigurationError, SchemaConfigError
from content_collections.query.parser import DEFAULT_MAX_PAGE_SIZE
from content_collections.schema.loader import parse_collection_schema, validate_collection_name
from content_collections.schema.model import Collection

DEFAULT_COLLECTIONS_FILE = "collections.json"


class ContentCollectionsConfig(BaseSettings):
    """Settings for a content collections process."""

    content_root: Path = Field(
        default_factory=Path.cwd,
        description="Directory that collection folders are resolved against",
    )
    collections_file: Optional[Path] = Field(
        default=None,
        description="Collections definition file. Defaults to collections.json under content_root",
    )

    debounce_seconds: float = Field(
        default=0.3,
        description="Quiet period before a burst of file changes is applied",
        ge=0,
    )
    max_page_size: int = Field(
        default=DEFAULT_MAX_PAGE_SIZE,
        description="Largest accepted 'top' value for a query",
        gt=0,
    )
    max_file_size_bytes: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_BYTES,
        description="Content files larger than this are rejected without being read",
        gt=0,
    )
    item_timeout_seconds: float = Field(
        default=10.0,
        description="Processing budget for a single content file",
        gt=0,
    )
    strip_date_prefix: bool = Field(
        default=True,
        description="Drop a leading YYYY-MM-DD- from filenames when deriving identifiers",
    )

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_COLLECTIONS_",
        extra="ignore",
    )

    @property
    def collections_path(self) -> Path:
        """Resolved location of the collections file."""
        if self.collections_file is None:
            return (self.content_root / DEFAULT_COLLECTIONS_FILE).expanduser().resolve()
        path = self.collections_file.expanduser()
        if not path.is_absolute():
            path = self.content_root / path
        return path.resolve()


# --- Collections file ---


class CollectionEntry(BaseModel):
    """One collection as written in the collections file."""

    folder: str
    definition: Dict[str, Any] = Field(alias="schema")
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("folder")
    @classmethod
    def folder_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("folder must not be empty")
        return v


class CollectionsFile(BaseModel):
    """Top level of the collections file.

    Entries are kept raw here and validated one by one, so that one broken
    collection does not hide the others.
    """

    content_root_path: Optional[str] = Field(default=None, alias="contentRootPath")
    collections: Dict[str, Any]

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


@dataclass
class LoadedCollections:
    """Outcome of reading a collections file."""

    content_root: Path
    collections: Dict[str, Collection] = field(default_factory=dict)
    errors: Dict[str, SchemaConfigError] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return sorted(set(self.collections) | set(self.errors))


def read_collections_file(path: Path) -> CollectionsFile:
    """Parse the collections file without building any collection.

    Raises:
        ConfigurationError: If the file is missing, unparseable or has no
            ``collections`` mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationError(f"Collections file not found: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read collections file {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid collections file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Collections file {path} must contain a mapping")

    try:
        return CollectionsFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid collections file {path}: {e}") from e


def build_collection(name: str, raw: Any, content_root: Path) -> Collection:
    """Turn one raw collections-file entry into a Collection.

    Raises:
        SchemaConfigError: If the name, the entry shape or the schema is invalid.
    """
    validate_collection_name(name)
    try:
        entry = CollectionEntry.model_validate(raw)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'entry'}: {err['msg']}" for err in e.errors()
        )
        raise SchemaConfigError(f"Invalid collection entry: {details}", collection=name) from e

    schema = parse_collection_schema(entry.definition, collection=name)

    folder = Path(entry.folder).expanduser()
    if not folder.is_absolute():
        folder = content_root / folder
    return Collection(
        name=name,
        folder=folder.resolve(),
        schema=schema,
        description=entry.description,
        source=raw if isinstance(raw, dict) else {},
    )


def load_collections_file(
    path: Path, content_root: Optional[Path] = None
) -> LoadedCollections:
    """Load every collection defined in a collections file.

    ``contentRootPath`` in the file, when present, is resolved relative to
    the file's own directory and takes precedence over ``content_root``.

    Returns:
        Successfully built collections plus a SchemaConfigError per
        collection that failed.

    Raises:
        ConfigurationError: If the file as a whole cannot be read.
    """
    path = Path(path)
    document = read_collections_file(path)

    root = Path(content_root) if content_root is not None else path.parent
    if document.content_root_path:
        declared = Path(document.content_root_path).expanduser()
        root = declared if declared.is_absolute() else path.parent / declared
    root = root.resolve()

    result = LoadedCollections(content_root=root)
    for name, raw in document.collections.items():
        try:
            result.collections[name] = build_collection(name, raw, root)
        except SchemaConfigError as e:
            logger.error("Collection configuration is invalid", collection=name, error=str(e))
            result.errors[name] = e

    logger.info(
        "Loaded collections file",
        path=str(path),
        collections=len(result.collections),
        errors=len(result.errors),
    )
    return result
