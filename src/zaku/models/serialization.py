"""TOML serialization for documents that live inside a space directory.

Request documents (one per request)::

    [meta]
    name = "Get user"

    [config]
    method = "GET"
    url = "https://example.com/users/1"

    [[config.headers]]
    enabled = false
    key = "Accept"
    value = "application/json"

Older documents store headers and parameters as a plain table where a key
starting with ``!`` marks a disabled entry.  Both shapes are read; only the
structured shape is written, so a header whose real name starts with ``!``
survives a round trip.

Also handles the space config (``zaku.toml``) and the collection
display-name index (``.zaku/collections/name.toml``).
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from zaku.errors import InvalidFormatError, IoError, NotFoundError
from zaku.models.request import Field, HttpReq, ReqCfg, ReqMeta
from zaku.models.space import SpaceMeta

SPACE_CONFIG_FILENAME = "zaku.toml"
SPACE_SIDECAR_DIRNAME = ".zaku"
DISPLAY_NAMES_RELPATH = Path(SPACE_SIDECAR_DIRNAME) / "collections" / "name.toml"

_DISABLED_PREFIX = "!"


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise NotFoundError(f"{path}: file not found") from None
    except tomllib.TOMLDecodeError as e:
        raise InvalidFormatError(f"{path}: {e}") from e
    except UnicodeDecodeError as e:
        raise InvalidFormatError(f"{path}: {e}") from e
    except OSError as e:
        raise IoError.from_os_error(path, e) from e


def _dump_toml(path: Path, data: dict[str, Any], *, exclusive: bool = False) -> None:
    content = tomli_w.dumps(data, multiline_strings=True)
    try:
        with open(path, "x" if exclusive else "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise IoError.from_os_error(path, e) from e


def _fields_from_toml(value: Any, path: Path, what: str) -> list[Field]:
    if value is None:
        return []
    fields: list[Field] = []
    if isinstance(value, dict):
        # legacy form: {"!Key": "value"} marks a disabled entry
        for key, val in value.items():
            enabled = not key.startswith(_DISABLED_PREFIX)
            fields.append((enabled, key if enabled else key[1:], str(val)))
        return fields
    if isinstance(value, list):
        for item in value:
            if not isinstance(item, dict) or "key" not in item:
                raise InvalidFormatError(f"{path}: malformed entry in config.{what}")
            fields.append((
                bool(item.get("enabled", True)),
                str(item["key"]),
                str(item.get("value", "")),
            ))
        return fields
    raise InvalidFormatError(f"{path}: config.{what} must be a table or an array of tables")


def _fields_to_toml(fields: list[Field]) -> list[dict[str, Any]]:
    return [{"enabled": enabled, "key": key, "value": value} for enabled, key, value in fields]


def request_from_toml(data: dict[str, Any], fsname: str, path: Path) -> HttpReq:
    """Build an ``HttpReq`` from a decoded request document."""
    meta = data.get("meta")
    config = data.get("config")
    if not isinstance(meta, dict) or not isinstance(config, dict):
        raise InvalidFormatError(f"{path}: missing [meta] or [config] table")
    method = config.get("method")
    if not isinstance(method, str) or not method.strip():
        raise InvalidFormatError(f"{path}: config.method must be a non-empty string")

    cfg = ReqCfg(
        method=method,
        url=config.get("url"),
        headers=_fields_from_toml(config.get("headers"), path, "headers"),
        parameters=_fields_from_toml(config.get("parameters"), path, "parameters"),
        content_type=config.get("content_type"),
        body=config.get("body"),
    )
    display_name = str(meta.get("name", fsname))
    return HttpReq(meta=ReqMeta(fsname, display_name, False), config=cfg)


def request_to_toml(req: HttpReq) -> dict[str, Any]:
    """Document form of a request.  Empty optional fields are omitted."""
    cfg = req.config
    config: dict[str, Any] = {"method": cfg.method}
    if cfg.url:
        config["url"] = cfg.url
    if cfg.content_type:
        config["content_type"] = cfg.content_type
    if cfg.body:
        config["body"] = cfg.body
    if cfg.headers:
        config["headers"] = _fields_to_toml(cfg.headers)
    if cfg.parameters:
        config["parameters"] = _fields_to_toml(cfg.parameters)
    return {"meta": {"name": req.meta.display_name}, "config": config}


def read_request(path: str | Path, fsname: str | None = None) -> HttpReq:
    """Read a request document.

    Raises:
        NotFoundError: the file could not be loaded.
        InvalidFormatError: the file is not a valid request document.
    """
    path = Path(path)
    data = _load_toml(path)
    return request_from_toml(data, fsname if fsname is not None else path.stem, path)


def write_request(path: str | Path, req: HttpReq) -> None:
    """Overwrite a request document with ``req``'s persisted fields."""
    _dump_toml(Path(path), request_to_toml(req))


def create_request_file(path: str | Path, display_name: str, method: str = "GET") -> HttpReq:
    """Create a minimal request document.  Fails if the file already exists."""
    path = Path(path)
    req = HttpReq(meta=ReqMeta(path.stem, display_name), config=ReqCfg(method=method))
    _dump_toml(path, request_to_toml(req), exclusive=True)
    return req


def read_space_config(space_abspath: str | Path) -> SpaceMeta:
    """Read ``meta.name`` from the space config document."""
    path = Path(space_abspath) / SPACE_CONFIG_FILENAME
    data = _load_toml(path)
    meta = data.get("meta")
    if not isinstance(meta, dict) or not isinstance(meta.get("name"), str):
        raise InvalidFormatError(f"{path}: missing meta.name")
    return SpaceMeta(name=meta["name"])


def write_space_config(space_abspath: str | Path, meta: SpaceMeta) -> None:
    _dump_toml(Path(space_abspath) / SPACE_CONFIG_FILENAME, {"meta": meta.to_dict()})


def read_display_names(space_abspath: str | Path) -> dict[str, str]:
    """Collection relpath -> display name.  A missing index is empty."""
    path = Path(space_abspath) / DISPLAY_NAMES_RELPATH
    try:
        data = _load_toml(path)
    except NotFoundError:
        return {}
    return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}


def write_display_names(space_abspath: str | Path, names: dict[str, str]) -> None:
    path = Path(space_abspath) / DISPLAY_NAMES_RELPATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IoError.from_os_error(path.parent, e) from e
    _dump_toml(path, dict(sorted(names.items())))


__all__ = [
    "DISPLAY_NAMES_RELPATH",
    "SPACE_CONFIG_FILENAME",
    "SPACE_SIDECAR_DIRNAME",
    "create_request_file",
    "read_display_names",
    "read_request",
    "read_space_config",
    "request_from_toml",
    "request_to_toml",
    "write_display_names",
    "write_request",
    "write_space_config",
]
