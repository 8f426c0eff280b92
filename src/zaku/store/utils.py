"""Locations and atomic JSON writes for the application data directory.

Layout::

    {datadir}/state.json
    {datadir}/spaces/{sha256(space abspath)}/buffer.json
    {datadir}/spaces/{sha256(space abspath)}/cookies.json
    {datadir}/spaces/{sha256(space abspath)}/settings.json
"""

from __future__ import annotations

import contextlib
import json
import os
import threading
from pathlib import Path
from typing import Any

from zaku.errors import InvalidFormatError, IoError
from zaku.sanitize import hashed_filename

SPACES_STORE_DIRNAME = "spaces"
STATE_FILENAME = "state.json"
BUFFER_FILENAME = "buffer.json"
COOKIES_FILENAME = "cookies.json"
SETTINGS_FILENAME = "settings.json"

_tmp_counter_lock = threading.Lock()
_tmp_counter = 0


def state_store_abspath(datadir: Path) -> Path:
    return Path(datadir) / STATE_FILENAME


def space_store_dir(datadir: Path, space_abspath: str | Path) -> Path:
    return Path(datadir) / SPACES_STORE_DIRNAME / hashed_filename(space_abspath)


def sbf_store_abspath(datadir: Path, space_abspath: str | Path) -> Path:
    """Space buffer store file for a space."""
    return space_store_dir(datadir, space_abspath) / BUFFER_FILENAME


def sck_store_abspath(datadir: Path, space_abspath: str | Path) -> Path:
    """Space cookie store file for a space."""
    return space_store_dir(datadir, space_abspath) / COOKIES_FILENAME


def sst_store_abspath(datadir: Path, space_abspath: str | Path) -> Path:
    """Space settings store file for a space."""
    return space_store_dir(datadir, space_abspath) / SETTINGS_FILENAME


def _tmp_path_for(path: Path) -> Path:
    global _tmp_counter
    with _tmp_counter_lock:
        _tmp_counter += 1
        n = _tmp_counter
    return path.with_name(f".{path.name}.{os.getpid()}.{n}.tmp")


def read_json(path: Path) -> Any:
    """Parse a JSON file.  Raises ``FileNotFoundError``, ``IoError`` or ``InvalidFormatError``."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise
    except OSError as e:
        raise IoError.from_os_error(path, e) from e
    try:
        return json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidFormatError(f"{path}: {e}") from e


def write_json_atomic(path: Path, data: Any) -> None:
    """Write the full document to a temp file beside ``path`` and replace it.

    Readers see either the old or the new document, never a partial one.
    """
    tmp = _tmp_path_for(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise IoError.from_os_error(path, e) from e


__all__ = [
    "read_json",
    "sbf_store_abspath",
    "sck_store_abspath",
    "space_store_dir",
    "sst_store_abspath",
    "state_store_abspath",
    "write_json_atomic",
]
