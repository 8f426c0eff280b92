"""HTTP request model as edited in a space.

``HttpReq`` carries both persisted fields (``meta`` and ``config``) and
transient ones (``response`` and ``status``) that never reach a request
document or the draft buffer.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from zaku.models.space import SpaceCookie

# (enabled, key, value)
Field = tuple[bool, str, str]

REQUEST_EXT = ".toml"


class ReqStatus(str, Enum):
    IDLE = "Idle"
    PENDING = "Pending"
    SUCCESS = "Success"
    ERROR = "Error"


def _fields_from_list(items: Any) -> list[Field]:
    """Accept ``[enabled, key, value]`` triples or ``{"enabled", "key", "value"}`` dicts."""
    fields: list[Field] = []
    for item in items or []:
        if isinstance(item, dict):
            fields.append((
                bool(item.get("enabled", True)),
                str(item.get("key", "")),
                str(item.get("value", "")),
            ))
        else:
            enabled, key, value = item
            fields.append((bool(enabled), str(key), str(value)))
    return fields


@dataclass
class ReqMeta:
    fsname: str
    display_name: str
    has_unsaved_changes: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "fsname": self.fsname,
            "display_name": self.display_name,
            "has_unsaved_changes": self.has_unsaved_changes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReqMeta:
        return cls(
            fsname=str(data.get("fsname", "")),
            display_name=str(data.get("display_name", "")),
            has_unsaved_changes=bool(data.get("has_unsaved_changes", False)),
        )


@dataclass
class ReqCfg:
    """Editable request configuration.

    Headers and parameters keep insertion order; disabled entries stay in
    the list with ``enabled=False`` so toggling them is lossless.
    """

    method: str = "GET"
    url: str | None = None
    headers: list[Field] = field(default_factory=list)
    parameters: list[Field] = field(default_factory=list)
    content_type: str | None = None
    body: str | None = None

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("method must not be empty")

    @property
    def enabled_headers(self) -> list[tuple[str, str]]:
        return [(k, v) for enabled, k, v in self.headers if enabled]

    @property
    def enabled_parameters(self) -> list[tuple[str, str]]:
        return [(k, v) for enabled, k, v in self.parameters if enabled]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary, omitting unset optional fields."""
        data: dict[str, Any] = {"method": self.method}
        if self.url:
            data["url"] = self.url
        if self.headers:
            data["headers"] = [list(h) for h in self.headers]
        if self.parameters:
            data["parameters"] = [list(p) for p in self.parameters]
        if self.content_type:
            data["content_type"] = self.content_type
        if self.body is not None:
            data["body"] = self.body
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReqCfg:
        return cls(
            method=str(data.get("method") or "GET"),
            url=data.get("url"),
            headers=_fields_from_list(data.get("headers")),
            parameters=_fields_from_list(data.get("parameters")),
            content_type=data.get("content_type"),
            body=data.get("body"),
        )


@dataclass
class HttpRes:
    """Response returned by the transport.  Never persisted."""

    data: str = ""
    status: int | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    cookies: list[SpaceCookie] = field(default_factory=list)
    size_bytes: int | None = None
    elapsed_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"data": self.data}
        if self.status is not None:
            data["status"] = self.status
        if self.headers:
            data["headers"] = [list(h) for h in self.headers]
        if self.cookies:
            data["cookies"] = [c.to_dict() for c in self.cookies]
        if self.size_bytes is not None:
            data["size_bytes"] = self.size_bytes
        if self.elapsed_ms is not None:
            data["elapsed_ms"] = self.elapsed_ms
        return data


@dataclass
class HttpReq:
    meta: ReqMeta
    config: ReqCfg = field(default_factory=ReqCfg)
    response: HttpRes | None = None
    status: ReqStatus = ReqStatus.IDLE

    @property
    def filename(self) -> str:
        """On-disk file name of the request document."""
        if self.meta.fsname.endswith(REQUEST_EXT):
            return self.meta.fsname
        return f"{self.meta.fsname}{REQUEST_EXT}"

    def persisted(self) -> HttpReq:
        """Copy with transient fields cleared and the unsaved flag reset."""
        return HttpReq(
            meta=ReqMeta(self.meta.fsname, self.meta.display_name, False),
            config=copy.deepcopy(self.config),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "meta": self.meta.to_dict(),
            "config": self.config.to_dict(),
            "status": self.status.value,
        }
        data["response"] = self.response.to_dict() if self.response else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HttpReq:
        """Create from a dictionary.  Transient fields are not restored."""
        return cls(
            meta=ReqMeta.from_dict(data.get("meta", {})),
            config=ReqCfg.from_dict(data.get("config", {})),
        )


@dataclass
class ReqBuf:
    """Draft of a request held in the space buffer: ``HttpReq`` minus transient fields."""

    meta: ReqMeta
    config: ReqCfg

    @classmethod
    def from_req(cls, req: HttpReq) -> ReqBuf:
        meta = ReqMeta(req.meta.fsname, req.meta.display_name, True)
        return cls(meta=meta, config=copy.deepcopy(req.config))

    def to_req(self) -> HttpReq:
        meta = ReqMeta(self.meta.fsname, self.meta.display_name, True)
        return HttpReq(meta=meta, config=copy.deepcopy(self.config))

    def to_dict(self) -> dict[str, Any]:
        return {"meta": self.meta.to_dict(), "config": self.config.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReqBuf:
        return cls(
            meta=ReqMeta.from_dict(data.get("meta", {})),
            config=ReqCfg.from_dict(data.get("config", {})),
        )


@dataclass(frozen=True)
class CreateRequestDto:
    parent_relpath: str
    relpath: str
    method: str = "GET"


__all__ = [
    "CreateRequestDto",
    "Field",
    "HttpReq",
    "HttpRes",
    "REQUEST_EXT",
    "ReqBuf",
    "ReqCfg",
    "ReqMeta",
    "ReqStatus",
]
