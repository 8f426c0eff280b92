"""Per-space cookie jars with a process-wide cache.

Each space gets one ``requests`` cookie jar, created lazily on first access
and persisted to ``{datadir}/spaces/{hash}/cookies.json`` as a list of
cookie records.  The registry cache and each jar have separate locks; the
cache lock is always taken first, and a jar's lock is never held across a
network send or while the file is read or written.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from http.cookiejar import Cookie
from pathlib import Path
from typing import Iterator

from requests.cookies import RequestsCookieJar, create_cookie

from zaku.errors import InvalidFormatError
from zaku.models.space import RemoveCookieDto, SpaceCookie
from zaku.store.utils import read_json, sck_store_abspath, write_json_atomic

logger = logging.getLogger(__name__)


def _to_rfc3339(epoch: int | None) -> str | None:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _from_rfc3339(value: str | None) -> int | None:
    if not value:
        return None
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def cookie_to_space_cookie(ck: Cookie) -> SpaceCookie:
    same_site = ck.get_nonstandard_attr("SameSite")
    return SpaceCookie(
        name=ck.name,
        value=ck.value or "",
        domain=ck.domain,
        path=ck.path or "/",
        secure=bool(ck.secure),
        http_only=ck.has_nonstandard_attr("HttpOnly"),
        same_site=str(same_site) if same_site else None,
        expires=_to_rfc3339(ck.expires),
    )


def _cookie_key(ck: Cookie) -> tuple[str, str, str]:
    return ck.domain, ck.path, ck.name


def space_cookie_to_cookie(sc: SpaceCookie) -> Cookie:
    rest: dict[str, str | None] = {}
    if sc.http_only:
        rest["HttpOnly"] = None
    if sc.same_site:
        rest["SameSite"] = sc.same_site
    return create_cookie(
        sc.name,
        sc.value,
        domain=sc.domain,
        path=sc.path or "/",
        secure=sc.secure,
        expires=_from_rfc3339(sc.expires),
        rest=rest,
    )


class SpaceCookieJar:
    """A cookie jar shared behind an exclusive lock."""

    def __init__(self, jar: RequestsCookieJar | None = None) -> None:
        self._jar = jar if jar is not None else RequestsCookieJar()
        self._lock = threading.Lock()
        # serializes snapshot+write so an older snapshot never lands last
        self._io_lock = threading.Lock()

    @contextmanager
    def locked(self) -> Iterator[RequestsCookieJar]:
        """Exclusive access to the underlying jar."""
        with self._lock:
            yield self._jar

    @contextmanager
    def detached(self) -> Iterator[RequestsCookieJar]:
        """A working copy of the jar for a long-running send.

        The lock is held only to copy and to merge.  Cookies the caller
        added, changed or dropped on the copy are applied to the shared jar
        on a clean exit; nothing is merged if the block raises.
        """
        with self._lock:
            working = self._jar.copy()
        before = {_cookie_key(ck): cookie_to_space_cookie(ck) for ck in working}

        yield working

        after = {_cookie_key(ck): ck for ck in working}
        with self._lock:
            for key in before.keys() - after.keys():
                domain, path, name = key
                try:
                    self._jar.clear(domain, path, name)
                except KeyError:
                    pass
            for key, ck in after.items():
                if before.get(key) != cookie_to_space_cookie(ck):
                    self._jar.set_cookie(ck)

    def cookies(self, *, include_expired: bool = False) -> list[SpaceCookie]:
        now = time.time()
        with self._lock:
            return [
                cookie_to_space_cookie(ck)
                for ck in self._jar
                if include_expired or not ck.is_expired(now)
            ]

    def set_cookie(self, cookie: SpaceCookie) -> None:
        ck = space_cookie_to_cookie(cookie)
        with self._lock:
            self._jar.set_cookie(ck)

    def remove(self, name: str, domain: str, path: str) -> bool:
        with self._lock:
            try:
                self._jar.clear(domain, path, name)
            except KeyError:
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._jar.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jar)


def group_by_domain(cookies: list[SpaceCookie]) -> dict[str, list[SpaceCookie]]:
    grouped: dict[str, list[SpaceCookie]] = defaultdict(list)
    for ck in cookies:
        grouped[ck.domain].append(ck)
    return dict(grouped)


class CookieRegistry:
    """Owns the cache of per-space jars keyed by space abspath.

    The app wires one registry; tests may create as many as they like.
    """

    def __init__(self, datadir: str | Path) -> None:
        self.datadir = Path(datadir)
        self._cache: dict[str, SpaceCookieJar] = {}
        self._lock = threading.Lock()

    def _read_jar(self, space_abspath: str) -> SpaceCookieJar:
        path = sck_store_abspath(self.datadir, space_abspath)
        try:
            records = read_json(path)
            if not isinstance(records, list):
                raise InvalidFormatError(f"{path}: expected a JSON array")
            jar = SpaceCookieJar()
            for record in records:
                jar.set_cookie(SpaceCookie.from_dict(record))
            return jar
        except FileNotFoundError:
            return SpaceCookieJar()
        except (InvalidFormatError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Resetting corrupt cookie store %s: %s", path, e)
            jar = SpaceCookieJar()
            self._write_jar(space_abspath, jar)
            return jar

    def _write_jar(self, space_abspath: str, jar: SpaceCookieJar) -> None:
        path = sck_store_abspath(self.datadir, space_abspath)
        with jar._io_lock:
            snapshot = [ck.to_dict() for ck in jar.cookies()]
            write_json_atomic(path, snapshot)

    def load(self, space_abspath: str | Path) -> SpaceCookieJar:
        """Return the space's jar, reading it from disk on first access."""
        key = str(space_abspath)
        with self._lock:
            jar = self._cache.get(key)
            if jar is None:
                jar = self._read_jar(key)
                self._cache[key] = jar
            return jar

    def persist(self, space_abspath: str | Path) -> None:
        """Write the jar to disk.  Failures propagate as ``IoError``."""
        jar = self.load(space_abspath)
        self._write_jar(str(space_abspath), jar)

    def clear(self, space_abspath: str | Path) -> None:
        self.load(space_abspath).clear()
        self.persist(space_abspath)

    def remove(self, space_abspath: str | Path, dto: RemoveCookieDto) -> bool:
        """Remove one cookie and persist.  Returns whether it existed."""
        removed = self.load(space_abspath).remove(dto.name, dto.domain, dto.path)
        if removed:
            self.persist(space_abspath)
        return removed

    def cookies_by_domain(self, space_abspath: str | Path) -> dict[str, list[SpaceCookie]]:
        return group_by_domain(self.load(space_abspath).cookies())


__all__ = [
    "CookieRegistry",
    "SpaceCookieJar",
    "cookie_to_space_cookie",
    "group_by_domain",
    "space_cookie_to_cookie",
]
