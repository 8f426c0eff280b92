"""Draft buffer for requests edited but not yet saved to their documents.

One JSON document per space at ``{datadir}/spaces/{hash}/buffer.json``::

    {
      "abspath": "/home/me/api-space",
      "requests": {"users/get-user.toml": {"meta": {...}, "config": {...}}},
      "collections": {"users": {"is_expanded": true}}
    }

Request keys are relpaths from the space root.  While a draft exists it
wins over the file on disk; ``commit`` writes it through the request codec
and drops it.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from zaku.errors import InvalidFormatError, NotFoundError
from zaku.models.request import REQUEST_EXT, HttpReq, ReqBuf
from zaku.models.serialization import write_request
from zaku.sanitize import join_relpaths, normalize_relpath, resolve_inside
from zaku.store.locking import RWLock
from zaku.store.utils import read_json, sbf_store_abspath, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class BufferView:
    """Immutable-by-convention copy of a buffer used by the tree scanner."""

    requests: dict[str, ReqBuf] = field(default_factory=dict)
    expanded: dict[str, bool] = field(default_factory=dict)


def rekey_prefix(mapping: dict, src: str, dest: str) -> dict:
    """Move every key equal to ``src`` or under ``src/`` to the same place under ``dest``."""
    out = {}
    for key, value in mapping.items():
        if key == src:
            out[dest] = value
        elif key.startswith(src + "/"):
            out[dest + key[len(src):]] = value
        else:
            out[key] = value
    return out


def request_relpath(parent_relpath: str, fsname: str) -> str:
    filename = fsname if fsname.endswith(REQUEST_EXT) else f"{fsname}{REQUEST_EXT}"
    return join_relpaths(normalize_relpath(parent_relpath), filename)


class SpaceBufferStore:
    """In-memory handle on one space's buffer, guarded by a read/write lock.

    Mutators take the write lock for the in-memory change and the persist
    that follows it.
    """

    def __init__(self, abspath: Path, space_abspath: str) -> None:
        self.abspath = abspath
        self.space_abspath = space_abspath
        self.requests: dict[str, ReqBuf] = {}
        self.expanded: dict[str, bool] = {}
        self._lock = RWLock()

    @classmethod
    def load(cls, datadir: str | Path, space_abspath: str | Path) -> SpaceBufferStore:
        """Read the buffer file if present, else start empty."""
        space_abspath = str(space_abspath)
        store = cls(sbf_store_abspath(Path(datadir), space_abspath), space_abspath)
        try:
            data = read_json(store.abspath)
        except FileNotFoundError:
            return store
        except InvalidFormatError as e:
            logger.warning("Ignoring unreadable space buffer %s: %s", store.abspath, e)
            return store
        try:
            if not isinstance(data, dict):
                raise InvalidFormatError(f"{store.abspath}: expected a JSON object")
            store.requests = {
                str(k): ReqBuf.from_dict(v) for k, v in data.get("requests", {}).items()
            }
            store.expanded = {
                str(k): bool(v.get("is_expanded", False))
                for k, v in data.get("collections", {}).items()
            }
        except (InvalidFormatError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable space buffer %s: %s", store.abspath, e)
            store.requests = {}
            store.expanded = {}
        return store

    @contextmanager
    def read_lock(self) -> Iterator[SpaceBufferStore]:
        with self._lock.read():
            yield self

    @contextmanager
    def write_lock(self) -> Iterator[SpaceBufferStore]:
        with self._lock.write():
            yield self

    # -- reads ----------------------------------------------------------------

    def get(self, relpath: str) -> ReqBuf | None:
        with self._lock.read():
            buf = self.requests.get(normalize_relpath(relpath))
            return copy.deepcopy(buf) if buf is not None else None

    def snapshot(self) -> BufferView:
        with self._lock.read():
            return BufferView(copy.deepcopy(self.requests), dict(self.expanded))

    def to_dict(self) -> dict:
        return {
            "abspath": self.space_abspath,
            "requests": {k: v.to_dict() for k, v in sorted(self.requests.items())},
            "collections": {
                k: {"is_expanded": v} for k, v in sorted(self.expanded.items())
            },
        }

    # -- writes ---------------------------------------------------------------

    def _persist_locked(self) -> None:
        write_json_atomic(self.abspath, self.to_dict())

    def persist(self) -> None:
        """Write the whole buffer document."""
        with self._lock.read():
            self._persist_locked()

    def upsert(self, parent_relpath: str, req: HttpReq) -> str:
        """Store a draft of ``req`` under ``parent_relpath``.  Returns the draft's relpath."""
        relpath = request_relpath(parent_relpath, req.meta.fsname)
        resolve_inside(self.space_abspath, relpath)
        with self._lock.write():
            self.requests[relpath] = ReqBuf.from_req(req)
            self._persist_locked()
        return relpath

    def commit(self, request_relpath: str) -> None:
        """Write the draft at ``request_relpath`` to its document and drop it.

        Raises:
            NotFoundError: the request document does not exist.
            SanitizationError: the relpath leaves the space root.
        """
        relpath = normalize_relpath(request_relpath)
        target = resolve_inside(self.space_abspath, relpath)
        with self._lock.write():
            if not target.is_file():
                raise NotFoundError(f"{target}: request document not found")
            buf = self.requests.get(relpath)
            if buf is None:
                logger.debug("Nothing to commit for %s", relpath)
                return
            write_request(target, buf.to_req())
            del self.requests[relpath]
            self._persist_locked()

    def discard(self, request_relpath: str) -> bool:
        """Drop a draft without writing it.  Returns ``True`` if one existed."""
        relpath = normalize_relpath(request_relpath)
        with self._lock.write():
            if self.requests.pop(relpath, None) is None:
                return False
            self._persist_locked()
            return True

    def set_collection_expanded(self, relpath: str, is_expanded: bool) -> None:
        with self._lock.write():
            self.expanded[normalize_relpath(relpath)] = is_expanded
            self._persist_locked()

    def rekey(self, src_relpath: str, dest_relpath: str) -> None:
        """Follow a move: entries at or below ``src_relpath`` move under ``dest_relpath``."""
        src = normalize_relpath(src_relpath)
        dest = normalize_relpath(dest_relpath)
        with self._lock.write():
            self.requests = rekey_prefix(self.requests, src, dest)
            self.expanded = rekey_prefix(self.expanded, src, dest)
            self._persist_locked()

    def drop_prefix(self, relpath: str) -> None:
        """Forget every entry at or below ``relpath`` (used after deletes)."""
        prefix = normalize_relpath(relpath)

        def keep(key: str) -> bool:
            return key != prefix and not key.startswith(prefix + "/")

        with self._lock.write():
            self.requests = {k: v for k, v in self.requests.items() if keep(k)}
            self.expanded = {k: v for k, v in self.expanded.items() if keep(k)}
            self._persist_locked()


class BufferRegistry:
    """Keeps exactly one ``SpaceBufferStore`` per space for the process."""

    def __init__(self, datadir: str | Path) -> None:
        self.datadir = Path(datadir)
        self._stores: dict[str, SpaceBufferStore] = {}
        self._lock = threading.Lock()

    def load(self, space_abspath: str | Path) -> SpaceBufferStore:
        key = str(space_abspath)
        with self._lock:
            store = self._stores.get(key)
            if store is None:
                store = SpaceBufferStore.load(self.datadir, key)
                self._stores[key] = store
            return store


__all__ = ["BufferRegistry", "BufferView", "SpaceBufferStore", "rekey_prefix", "request_relpath"]
