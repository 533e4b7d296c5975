"""Shared helpers: logging setup and path utilities."""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

FilePath = Union[Path, str]


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[FilePath] = None,
    console: bool = True,
) -> None:  # pragma: no cover
    """Configure loguru sinks for the CLI and long-running processes.

    Library code only ever logs through ``logger``; installing sinks is the
    job of whoever owns the process.

    Args:
        log_level: Minimum level for every sink
        log_file: Optional file path, rotated at 10 MB
        console: Whether to log to stderr
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=False, colorize=True)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.debug(f"Logging configured at level {log_level}")


def normalize_path(path: FilePath) -> str:
    """Return an absolute, symlink-resolved POSIX path string.

    Used as the key for items and debounce timers so that the same file seen
    through different spellings collapses to one entry.
    """
    resolved = Path(path).expanduser().resolve()
    return resolved.as_posix()


def is_within(path: FilePath, folder: FilePath) -> bool:
    """Check whether ``path`` lives inside ``folder`` after resolving symlinks."""
    try:
        Path(path).resolve().relative_to(Path(folder).resolve())
        return True
    except ValueError:
        return False


def split_outside_quotes(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator`` except inside single-quoted literals.

    A doubled quote (``''``) inside a literal is an escaped quote and does not
    end the literal.

    Example:
        >>> split_outside_quotes("filter=title eq 'a&b'&top=1", "&")
        ["filter=title eq 'a&b'", 'top=1']
    """
    parts: list[str] = []
    current: list[str] = []
    in_quote = False
    i = 0
    while i < len(text):
        char = text[i]
        if char == "'":
            if in_quote and i + 1 < len(text) and text[i + 1] == "'":
                current.append("''")
                i += 2
                continue
            in_quote = not in_quote
        if char == separator and not in_quote:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    parts.append("".join(current))
    return parts
