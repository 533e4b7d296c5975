"""Identifier resolution for content items.

An item's identifier (its slug) comes from the ``slug`` declared in its
metadata when there is one, otherwise from its filename. Both go through the
same normalization:

  "Café Société_Notes"      -> "cafe-societe-notes"
  "2025-11-09-hello-world.md" -> "hello-world"   (date prefix stripped)

Diacritics are transliterated with unidecode's fixed table, so the result
never depends on the process locale. Normalization is idempotent: resolving
an already-resolved identifier returns it unchanged.
"""

import re
from pathlib import PurePath
from typing import Optional

from unidecode import unidecode

from content_collections.errors import IdentifierError

DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-(?=.)")
_SEPARATOR_RE = re.compile(r"[\s_]+")
_INVALID_CHARS_RE = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")


def normalize_identifier(text: str) -> str:
    """Normalize free text into a URL-safe identifier.

    Steps: trim and lowercase, transliterate diacritics, turn runs of
    whitespace/underscores into single hyphens, drop anything outside
    ``[a-z0-9-]``, collapse repeated hyphens and trim hyphens at the ends.

    Returns:
        The normalized identifier, possibly empty.
    """
    slug = unidecode(text.strip().lower()).lower()
    slug = _SEPARATOR_RE.sub("-", slug)
    slug = _INVALID_CHARS_RE.sub("", slug)
    slug = _HYPHEN_RUN_RE.sub("-", slug)
    return slug.strip("-")


def identifier_from_filename(filename: str, strip_date_prefix: bool = True) -> str:
    """Derive an identifier from a filename (or path).

    The extension is removed first, then an optional ``YYYY-MM-DD-`` prefix.
    """
    stem = PurePath(filename).stem
    if strip_date_prefix:
        stem = DATE_PREFIX_RE.sub("", stem, count=1)
    return normalize_identifier(stem)


def resolve_identifier(
    declared_slug: Optional[str],
    filename: str,
    strip_date_prefix: bool = True,
) -> str:
    """Resolve the canonical identifier for an item.

    Args:
        declared_slug: The ``slug`` from the item's metadata, if any.
        filename: The file name or path of the item.
        strip_date_prefix: Whether a leading ``YYYY-MM-DD-`` is dropped from
            filenames (declared slugs are never stripped).

    Returns:
        The identifier.

    Raises:
        IdentifierError: If neither source yields a non-empty identifier.
    """
    if declared_slug is not None and str(declared_slug).strip():
        slug = normalize_identifier(str(declared_slug))
        if slug:
            return slug

    slug = identifier_from_filename(filename, strip_date_prefix=strip_date_prefix)
    if not slug:
        raise IdentifierError(
            f"Cannot derive an identifier from slug {declared_slug!r} or filename {filename!r}"
        )
    return slug
