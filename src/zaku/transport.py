"""Boundary to the network and to desktop notifications.

The space facade only talks to the ``Transport`` and ``Notifier``
protocols.  ``RequestsTransport`` is the default transport: it sends one
request with ``requests`` using the space's cookie jar, so cookies set by
the server land in the jar the facade then persists.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Protocol

import requests
from requests.cookies import RequestsCookieJar

from zaku.errors import ZakuError
from zaku.models.request import HttpRes, ReqCfg
from zaku.store.cookie import cookie_to_space_cookie

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    def send(self, config: ReqCfg, cookie_jar: RequestsCookieJar) -> HttpRes: ...


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None: ...

    def play_finish_sound(self) -> None: ...


class RequestsTransport:
    """Send requests through a short-lived ``requests.Session``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, verify: bool = True) -> None:
        self.timeout = timeout
        self.verify = verify

    def _headers(self, config: ReqCfg) -> dict[str, str]:
        headers = dict(config.enabled_headers)
        if config.content_type and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = config.content_type
        return headers

    def send(self, config: ReqCfg, cookie_jar: RequestsCookieJar) -> HttpRes:
        if not config.url:
            raise ZakuError("Request has no URL")

        body = config.body.encode("utf-8") if config.body else None
        with requests.Session() as session:
            session.cookies = cookie_jar
            start = time.perf_counter()
            try:
                resp = session.request(
                    config.method,
                    config.url,
                    headers=self._headers(config),
                    params=config.enabled_parameters or None,
                    data=body,
                    timeout=self.timeout,
                    verify=self.verify,
                )
            except requests.exceptions.RequestException as e:
                raise ZakuError(f"{config.method} {config.url}: {e}") from e
            elapsed_ms = int((time.perf_counter() - start) * 1000)

        logger.debug("%s %s -> %d in %dms", config.method, config.url, resp.status_code, elapsed_ms)
        return HttpRes(
            data=resp.text,
            status=resp.status_code,
            headers=list(resp.headers.items()),
            cookies=[cookie_to_space_cookie(ck) for ck in resp.cookies],
            size_bytes=len(resp.content),
            elapsed_ms=elapsed_ms,
        )


class LogNotifier:
    """Notifier for headless use: notifications go to the log, sounds to the terminal bell."""

    def notify(self, title: str, body: str) -> None:
        logger.info("%s: %s", title, body)

    def play_finish_sound(self) -> None:
        sys.stderr.write("\a")
        sys.stderr.flush()


__all__ = ["DEFAULT_TIMEOUT", "LogNotifier", "Notifier", "RequestsTransport", "Transport"]
