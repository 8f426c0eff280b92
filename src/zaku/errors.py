"""Error taxonomy shared by every store and the space facade.

Each error carries a ``kind`` string so command handlers can hand a
``{"kind", "message"}`` payload to the UI without inspecting types.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ZakuError(Exception):
    """Base error.  Used directly for the ``Other`` kind."""

    kind = "Other"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class IoError(ZakuError):
    """Filesystem failure.  Surfaced, never retried."""

    kind = "IoError"

    @classmethod
    def from_os_error(cls, path: str | Path, err: OSError) -> IoError:
        return cls(f"{path}: {err.strerror or err}")


class InvalidFormatError(ZakuError):
    """A persisted document could not be parsed."""

    kind = "InvalidFormat"


class SanitizationError(ZakuError):
    """A user-supplied name maps to an empty or unsafe on-disk segment."""

    kind = "SanitizationError"


class LockError(ZakuError):
    kind = "LockError"


class NotFoundError(ZakuError):
    """A requested relpath has no file or buffer entry behind it."""

    kind = "NotFound"


__all__ = [
    "InvalidFormatError",
    "IoError",
    "LockError",
    "NotFoundError",
    "SanitizationError",
    "ZakuError",
]
