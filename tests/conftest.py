"""Common test fixtures."""

import json
from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest

from content_collections.config import ContentCollectionsConfig
from content_collections.models import Item
from content_collections.schema.loader import parse_collection_schema
from content_collections.schema.model import Collection, CollectionSchema

BLOG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": 120},
        "publishDate": {"type": "date"},
        "draft": {"type": "boolean"},
        "rating": {"type": "number", "minimum": 0, "maximum": 5},
        "author": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["title", "publishDate"],
}


def write_markdown(folder: Path, name: str, front_matter: str, body: str = "Body text.") -> Path:
    """Write a Markdown file with YAML front matter."""
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(f"---\n{dedent(front_matter).strip()}\n---\n\n{body}\n", encoding="utf-8")
    return path


def write_json(folder: Path, name: str, data: Any) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def make_item(identifier: str, path: str | None = None, **metadata: Any) -> Item:
    """Build a valid item without touching the file system."""
    return Item(
        identifier=identifier,
        path=path or f"/content/posts/{identifier}.md",
        metadata=metadata,
    )


@pytest.fixture
def blog_schema() -> CollectionSchema:
    return parse_collection_schema(BLOG_SCHEMA, collection="posts")


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def posts_folder(content_root: Path) -> Path:
    folder = content_root / "posts"
    folder.mkdir()
    return folder


@pytest.fixture
def posts_collection(posts_folder: Path, blog_schema: CollectionSchema) -> Collection:
    return Collection(name="posts", folder=posts_folder.resolve(), schema=blog_schema)


@pytest.fixture
def config(content_root: Path) -> ContentCollectionsConfig:
    return ContentCollectionsConfig(
        content_root=content_root,
        debounce_seconds=0.05,
        item_timeout_seconds=5.0,
    )


@pytest.fixture
def collections_file(content_root: Path) -> Path:
    """A collections.json with one valid and one broken collection."""
    path = content_root / "collections.json"
    path.write_text(
        json.dumps(
            {
                "collections": {
                    "posts": {"folder": "posts", "schema": BLOG_SCHEMA},
                    "broken": {
                        "folder": "broken",
                        "schema": {
                            "type": "object",
                            "properties": {"tags": {"type": "array"}},
                        },
                    },
                }
            }
        ),
        encoding="utf-8",
    )
    return path
