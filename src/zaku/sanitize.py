"""Mapping from human names and paths to safe on-disk segments.

Every user-supplied collection or request name goes through here before it
touches the filesystem.  The resulting ``fsname`` is lowercase, made of
letters, ASCII digits and single dashes, and never a Windows device name.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from zaku.errors import SanitizationError

WINDOWS_RESERVED = frozenset(
    ["con", "prn", "aux", "nul"]
    + [f"com{i}" for i in range(1, 10)]
    + [f"lpt{i}" for i in range(1, 10)]
)

_DASH_RUNS = re.compile(r"-+")
_BACKSLASH_RUNS = re.compile(r"\\+")


@dataclass(frozen=True)
class Segment:
    """A human label and its sanitized on-disk slug."""

    name: str
    fsname: str


def _is_fs_char(char: str) -> bool:
    return char.isalpha() or char in "0123456789"


def to_fsname(name: str) -> str:
    """Sanitize a single name.  Raises ``SanitizationError`` if nothing usable remains."""
    mapped = "".join(c if _is_fs_char(c) else "-" for c in name.lower())
    sanitized = _DASH_RUNS.sub("-", mapped).strip("-")

    if not sanitized:
        raise SanitizationError(f"Empty name after sanitization: {name!r}")
    if sanitized in WINDOWS_RESERVED:
        raise SanitizationError(f"Reserved name not allowed: {sanitized}")
    return sanitized


def to_sanitized_segments(relpath: str | Path) -> list[Segment]:
    """Split a ``/``-separated relpath into sanitized segments.

    Backslashes are part of a name, never a separator: each run of them
    becomes a single dash.  Blank segments are dropped.
    """
    raw = _BACKSLASH_RUNS.sub("-", str(relpath))
    segments: list[Segment] = []
    for part in raw.split("/"):
        name = part.strip().strip("-").strip()
        if not name:
            continue
        segments.append(Segment(name=name, fsname=to_fsname(name)))
    return segments


def hashed_filename(abspath: str | Path) -> str:
    """Lowercase SHA-256 hex of the absolute path, used to name per-space stores."""
    return hashlib.sha256(str(abspath).encode("utf-8")).hexdigest()


def join_relpaths(*parts: str) -> str:
    """Join non-empty relpath parts with ``/``."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(cleaned)


def normalize_relpath(relpath: str | Path) -> str:
    """Posix form of a relpath with no leading, trailing or doubled slashes."""
    return join_relpaths(*str(relpath).split("/"))


def resolve_inside(root: str | Path, relpath: str | Path, *, allow_root: bool = False) -> Path:
    """Join ``relpath`` onto ``root``, refusing anything that resolves outside it.

    Raises:
        SanitizationError: the path escapes ``root``, or names ``root`` itself
            when ``allow_root`` is false.
    """
    root = Path(root)
    resolved_root = root.resolve()
    target = (root / relpath).resolve()
    if target == resolved_root:
        if allow_root:
            return root / relpath
    elif resolved_root in target.parents:
        return root / relpath
    raise SanitizationError(f"Path escapes the space root: {str(relpath)!r}")


__all__ = [
    "Segment",
    "WINDOWS_RESERVED",
    "hashed_filename",
    "join_relpaths",
    "normalize_relpath",
    "resolve_inside",
    "to_fsname",
    "to_sanitized_segments",
]
