"""Depth-first walk of a space directory into a ``Space`` snapshot.

Directories become collections and ``*.toml`` files become requests.  The
``.zaku`` sidecar directory is skipped at any depth, as are symlinks and
the space config document at the root.  At every level collections come
before requests, each sorted by ``fsname``, so two parses of the same tree
compare equal.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from zaku.errors import InvalidFormatError, IoError, NotFoundError
from zaku.models.collection import Collection, CollectionMeta
from zaku.models.request import REQUEST_EXT, HttpReq
from zaku.models.serialization import (
    SPACE_CONFIG_FILENAME,
    SPACE_SIDECAR_DIRNAME,
    read_display_names,
    read_request,
    read_space_config,
)
from zaku.models.space import Space, SpaceCookie, SpaceSettings
from zaku.sanitize import join_relpaths
from zaku.store.buffer import BufferView

logger = logging.getLogger(__name__)


def _scan_dir(abspath: Path) -> tuple[list[os.DirEntry], list[os.DirEntry]]:
    try:
        with os.scandir(abspath) as it:
            entries = list(it)
    except OSError as e:
        raise IoError.from_os_error(abspath, e) from e

    dirs, files = [], []
    for entry in entries:
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            if entry.name != SPACE_SIDECAR_DIRNAME:
                dirs.append(entry)
        elif entry.is_file(follow_symlinks=False) and entry.name.endswith(REQUEST_EXT):
            files.append(entry)
    dirs.sort(key=lambda e: e.name)
    files.sort(key=lambda e: Path(e.name).stem)
    return dirs, files


def _load_request(entry: os.DirEntry, relpath: str, buffer: BufferView) -> HttpReq | None:
    fsname = Path(entry.name).stem
    draft = buffer.requests.get(relpath)
    if draft is not None:
        req = draft.to_req()
        req.meta.fsname = fsname
        return req
    try:
        return read_request(entry.path, fsname)
    except (InvalidFormatError, NotFoundError, IoError) as e:
        logger.warning("Skipping unreadable request document: %s", e)
        return None


def parse_collection(
    space_abspath: Path,
    relpath: str,
    meta: CollectionMeta,
    display_names: dict[str, str],
    buffer: BufferView,
) -> Collection:
    collection = Collection(meta=meta)
    dirs, files = _scan_dir(space_abspath / relpath if relpath else space_abspath)

    for entry in dirs:
        child_relpath = join_relpaths(relpath, entry.name)
        child_meta = CollectionMeta(
            fsname=entry.name,
            relpath=child_relpath,
            display_name=display_names.get(child_relpath),
            is_expanded=buffer.expanded.get(child_relpath, False),
        )
        collection.collections.append(
            parse_collection(space_abspath, child_relpath, child_meta, display_names, buffer)
        )

    for entry in files:
        if not relpath and entry.name == SPACE_CONFIG_FILENAME:
            continue
        req = _load_request(entry, join_relpaths(relpath, entry.name), buffer)
        if req is not None:
            collection.requests.append(req)

    return collection


def parse_space_with(
    buffer: BufferView,
    space_abspath: str | Path,
    cookies: dict[str, list[SpaceCookie]] | None = None,
    settings: SpaceSettings | None = None,
) -> Space:
    """Parse a space with an injected buffer view.

    Raises:
        NotFoundError: the space config document is missing.
        InvalidFormatError: the space config document is corrupt.
        IoError: the space directory cannot be listed.
    """
    space_abspath = Path(space_abspath)
    meta = read_space_config(space_abspath)

    try:
        display_names = read_display_names(space_abspath)
    except (InvalidFormatError, IoError) as e:
        logger.warning("Ignoring unreadable collection names: %s", e)
        display_names = {}

    root_meta = CollectionMeta(
        fsname=space_abspath.name,
        relpath="",
        display_name=meta.name,
        is_expanded=True,
    )
    root = parse_collection(space_abspath, "", root_meta, display_names, buffer)

    return Space(
        abspath=str(space_abspath),
        meta=meta,
        root_collection=root,
        cookies=cookies if cookies is not None else {},
        settings=settings if settings is not None else SpaceSettings(),
    )


def parse_space(
    space_abspath: str | Path,
    buffer: BufferView | None = None,
    cookies: dict[str, list[SpaceCookie]] | None = None,
    settings: SpaceSettings | None = None,
) -> Space:
    """Parse a space directory, overlaying drafts from ``buffer`` when given."""
    view = buffer if buffer is not None else BufferView()
    return parse_space_with(view, space_abspath, cookies, settings)


parse_space_config = read_space_config

__all__ = ["parse_collection", "parse_space", "parse_space_config", "parse_space_with"]
