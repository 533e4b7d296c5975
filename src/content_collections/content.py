"""Reading content files into metadata and body.

Markdown files carry their metadata as YAML front matter; JSON files are
pure data (a top-level object) with no body.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import frontmatter
import yaml
from loguru import logger

from content_collections.errors import ContentParseError
from content_collections.utils import FilePath

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
DATA_EXTENSIONS = frozenset({".json"})
CONTENT_EXTENSIONS = MARKDOWN_EXTENSIONS | DATA_EXTENSIONS

DEFAULT_MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024

SLUG_KEY = "slug"

FILE_TOO_LARGE = "file-too-large"
PARSE_FAILURE = "parse-failure"


@dataclass(frozen=True)
class ParsedContent:
    """What a content file yields before validation."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    declared_slug: Optional[str] = None
    modified_at: Optional[datetime] = None


def is_content_file(path: FilePath) -> bool:
    """Check whether a path names a file the engine should read.

    Hidden files, editor temp files and unsupported extensions are skipped.
    """
    path = Path(path)
    name = path.name
    if not name or name.startswith(".") or name.endswith("~"):
        return False
    return path.suffix.lower() in CONTENT_EXTENSIONS


def parse_content(path: FilePath, text: str) -> ParsedContent:
    """Split file text into metadata and body.

    Args:
        path: Source path, used for the format and in error messages
        text: Decoded file content

    Raises:
        ContentParseError: If the text is not valid for its format
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in MARKDOWN_EXTENSIONS:
        metadata, body = _parse_markdown(path, text)
    elif suffix in DATA_EXTENSIONS:
        metadata, body = _parse_json(path, text), None
    else:
        raise ContentParseError(f"Unsupported content file type: {suffix or '(none)'}", str(path))

    declared = metadata.get(SLUG_KEY)
    declared_slug = declared if isinstance(declared, str) and declared.strip() else None
    return ParsedContent(metadata=metadata, body=body, declared_slug=declared_slug)


def _parse_markdown(path: Path, text: str) -> tuple[Dict[str, Any], str]:
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise ContentParseError(f"Invalid YAML in front matter: {e}", str(path)) from e

    metadata = dict(post.metadata)
    return metadata, post.content


def _parse_json(path: Path, text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ContentParseError(
            f"Invalid JSON at line {e.lineno}, column {e.colno}: {e.msg}", str(path)
        ) from e
    if not isinstance(data, dict):
        raise ContentParseError(
            f"JSON content must be an object, got {type(data).__name__}", str(path)
        )
    return data


async def read_content_file(
    path: FilePath, max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
) -> ParsedContent:
    """Read and parse one content file.

    I/O errors are not translated: a FileNotFoundError means the file is
    gone, any other OSError is treated as transient by the caller.

    Raises:
        ContentParseError: For oversize files, undecodable bytes or bad syntax
        OSError: If the file cannot be read
    """
    path = Path(path)
    stat = path.stat()
    if stat.st_size > max_file_size_bytes:
        raise ContentParseError(
            f"File is {stat.st_size} bytes, limit is {max_file_size_bytes}",
            str(path),
            kind=FILE_TOO_LARGE,
        )

    async with aiofiles.open(path, mode="rb") as f:
        raw = await f.read()

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ContentParseError(f"File is not valid UTF-8: {e}", str(path)) from e

    # Parsed off the event loop; callers bound it with a per-item timeout.
    parsed = await asyncio.to_thread(parse_content, path, text)
    modified_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    logger.trace("Read content file", path=str(path), size=stat.st_size)
    return ParsedContent(
        metadata=parsed.metadata,
        body=parsed.body,
        declared_slug=parsed.declared_slug,
        modified_at=modified_at,
    )
