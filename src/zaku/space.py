"""Space facade: the operations the UI command layer calls.

``SpaceService`` ties the on-disk stores together.  Tree operations work on
the active space recorded in the application state.  Every mutation
re-parses the space and publishes the result to the shared state holder.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from zaku.config import Settings
from zaku.errors import InvalidFormatError, IoError, NotFoundError, SanitizationError, ZakuError
from zaku.models.collection import CreateCollectionDto, CreatedItem, MoveTreeItemDto
from zaku.models.request import REQUEST_EXT, CreateRequestDto, HttpReq, HttpRes
from zaku.models.serialization import (
    DISPLAY_NAMES_RELPATH,
    create_request_file,
    read_display_names,
    read_space_config,
    write_display_names,
    write_space_config,
)
from zaku.models.space import (
    CreateSpaceDto,
    RemoveCookieDto,
    Space,
    SpaceCookie,
    SpaceMeta,
    SpaceReference,
    SpaceSettings,
    Theme,
)
from zaku.sanitize import (
    Segment,
    join_relpaths,
    normalize_relpath,
    resolve_inside,
    to_fsname,
    to_sanitized_segments,
)
from zaku.scanner import parse_space_with
from zaku.state import SharedStateHolder
from zaku.store.buffer import BufferRegistry, rekey_prefix
from zaku.store.cookie import CookieRegistry
from zaku.store.settings import SpaceSettingsStore
from zaku.store.state import State, StateStore
from zaku.store.utils import sst_store_abspath, state_store_abspath
from zaku.transport import Notifier, RequestsTransport, Transport

logger = logging.getLogger(__name__)


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(exist_ok=True)
    except OSError as e:
        raise IoError.from_os_error(path, e) from e


class SpaceService:
    """Entry point for space, collection, request and cookie operations."""

    def __init__(
        self,
        datadir: str | Path,
        state_store: StateStore | None = None,
        cookies: CookieRegistry | None = None,
        buffers: BufferRegistry | None = None,
        shared: SharedStateHolder | None = None,
    ) -> None:
        self.datadir = Path(datadir)
        self.state_store = state_store or StateStore.get(state_store_abspath(self.datadir))
        self.cookies = cookies or CookieRegistry(self.datadir)
        self.buffers = buffers or BufferRegistry(self.datadir)
        self.shared = shared or SharedStateHolder()

    @classmethod
    def from_settings(cls, settings: Settings) -> SpaceService:
        return cls(settings.data_dir)

    # -- helpers ----------------------------------------------------------------

    def _active_abspath(self) -> Path:
        spaceref = self.state_store.get_spaceref()
        if spaceref is None:
            raise NotFoundError("No active space selected")
        return Path(spaceref.path)

    def _is_active(self, space_abspath: str | Path) -> bool:
        spaceref = self.state_store.get_spaceref()
        return spaceref is not None and spaceref.path == str(space_abspath)

    def _refresh(self, space_abspath: Path | None = None) -> Space:
        space = self.parse_space(space_abspath or self._active_abspath())
        self.shared.replace_space(space, self.state_store.get_spacerefs())
        return space

    def _refresh_if_active(self, space_abspath: str | Path) -> None:
        if self._is_active(space_abspath):
            self._refresh(Path(space_abspath))

    def _inside(self, space_abspath: Path, relpath: str) -> Path:
        """Absolute path of ``relpath``; it must name something strictly below the root."""
        return resolve_inside(space_abspath, relpath)

    def _display_names(self, space_abspath: Path) -> dict[str, str]:
        try:
            return read_display_names(space_abspath)
        except InvalidFormatError as e:
            logger.warning("Rebuilding unreadable collection names: %s", e)
            return {}

    def _create_collections(
        self, space_abspath: Path, parent_relpath: str, segments: list[Segment]
    ) -> str:
        """Create each segment under the previous one.  Returns the deepest relpath."""
        parent_abspath = resolve_inside(space_abspath, parent_relpath, allow_root=True)
        if not parent_abspath.is_dir():
            raise NotFoundError(f"{parent_abspath}: parent collection not found")

        names = self._display_names(space_abspath)
        relpath = parent_relpath
        for segment in segments:
            relpath = join_relpaths(relpath, segment.fsname)
            _mkdir(space_abspath / relpath)
            names.setdefault(relpath, segment.name)
        write_display_names(space_abspath, names)
        return relpath

    # -- spaces -----------------------------------------------------------------

    def create_space(self, dto: CreateSpaceDto) -> SpaceReference:
        """Create a space directory under ``dto.location`` and make it active.

        Raises:
            NotFoundError: the location does not exist.
            SanitizationError: the name has no usable characters.
            ZakuError: the target is already a known space.
            IoError: the target directory exists or cannot be created.
        """
        location = Path(dto.location).absolute()
        if not location.is_dir():
            raise NotFoundError(f"{location}: location does not exist")
        fsname = to_fsname(dto.name)

        space_abspath = location / fsname
        if any(ref.path == str(space_abspath) for ref in self.state_store.get_spacerefs()):
            raise ZakuError(f"{space_abspath}: space already exists in saved spaces")
        if space_abspath.exists():
            raise IoError(f"{space_abspath}: directory with this name already exists")

        try:
            space_abspath.mkdir()
            (space_abspath / DISPLAY_NAMES_RELPATH.parent).mkdir(parents=True)
        except OSError as e:
            raise IoError.from_os_error(space_abspath, e) from e
        write_space_config(space_abspath, SpaceMeta(name=dto.name))

        spaceref = SpaceReference(path=str(space_abspath), name=dto.name)

        def _record(state: State) -> None:
            state.spacerefs.append(spaceref)
            state.spaceref = spaceref

        self.state_store.update(_record)
        logger.info("Created space %s at %s", dto.name, space_abspath)
        self._refresh(space_abspath)
        return spaceref

    def first_valid_spaceref(self) -> SpaceReference | None:
        """First known space whose config document can be read."""
        for spaceref in self.state_store.get_spacerefs():
            try:
                read_space_config(spaceref.path)
            except ZakuError as e:
                logger.debug("Skipping space %s: %s", spaceref.path, e)
                continue
            return spaceref
        return None

    def parse_space(self, space_abspath: str | Path) -> Space:
        space_abspath = Path(space_abspath)
        view = self.buffers.load(space_abspath).snapshot()
        space = parse_space_with(view, space_abspath)
        space.cookies = self.cookies.cookies_by_domain(space_abspath)
        space.settings = SpaceSettingsStore.get(
            self.datadir,
            space_abspath,
            default_theme=self.state_store.user_settings.default_theme,
        ).into_inner()
        return space

    def set_active_space(self, spaceref: SpaceReference) -> Space:
        space_abspath = Path(spaceref.path)
        if not space_abspath.is_dir():
            raise NotFoundError(f"{space_abspath}: directory does not exist")
        space = self.parse_space(space_abspath)

        def _activate(state: State) -> None:
            state.spaceref = spaceref
            if not any(ref.path == spaceref.path for ref in state.spacerefs):
                state.spacerefs.append(spaceref)

        self.state_store.update(_activate)
        self.shared.replace_space(space, self.state_store.get_spacerefs())
        return space

    def delete_space(self, spaceref: SpaceReference) -> Space | None:
        """Forget a space (its directory is kept).

        When the active space is forgotten, the first valid remaining space
        becomes active.  Returns the open space afterwards, if any.
        """
        self.state_store.remove_spaceref(spaceref)
        if self.state_store.get_spaceref() is not None:
            self.shared.replace_spacerefs(self.state_store.get_spacerefs())
            return self.shared.snapshot().space

        space = None
        fallback = self.first_valid_spaceref()
        if fallback is not None:
            self.state_store.set_spaceref(fallback)
            try:
                space = self.parse_space(fallback.path)
            except ZakuError as e:
                logger.warning("Unable to open fallback space %s: %s", fallback.path, e)
        self.shared.replace_space(space, self.state_store.get_spacerefs())
        return space

    def get_spaceref(self, path: str | Path) -> SpaceReference:
        path = Path(path).absolute()
        meta = read_space_config(path)
        return SpaceReference(path=str(path), name=meta.name)

    # -- collections ------------------------------------------------------------

    def create_collection(self, dto: CreateCollectionDto) -> CreatedItem:
        """Create ``dto.relpath`` (possibly nested) under ``dto.parent_relpath``.

        Each segment's original spelling is kept as its display name unless
        the index already has one.
        """
        space_abspath = self._active_abspath()
        parent = normalize_relpath(dto.parent_relpath)
        segments = to_sanitized_segments(dto.relpath)
        if not segments:
            raise SanitizationError("Collection name is missing")

        relpath = self._create_collections(space_abspath, parent, segments)
        self._refresh(space_abspath)
        return CreatedItem(parent_relpath=parent, relpath=relpath)

    def rename_collection(self, relpath: str, new_display_name: str) -> Space:
        """Change a collection's display name.  The directory keeps its name."""
        space_abspath = self._active_abspath()
        relpath = normalize_relpath(relpath)
        if not self._inside(space_abspath, relpath).is_dir():
            raise NotFoundError(f"{relpath}: collection not found")
        name = new_display_name.strip()
        if not name:
            raise SanitizationError("Collection name is missing")

        names = self._display_names(space_abspath)
        names[relpath] = name
        write_display_names(space_abspath, names)
        return self._refresh(space_abspath)

    def move_tree_item(self, dto: MoveTreeItemDto) -> Space:
        """Rename a collection or request within the active space.

        Display names and drafts recorded under the old path follow it.

        Raises:
            SanitizationError: either path leaves the space root, or a
                collection would move into itself.
            NotFoundError: the source or the destination's parent is missing.
            IoError: the destination already exists.
        """
        space_abspath = self._active_abspath()
        src = normalize_relpath(dto.src_relpath)
        dest = normalize_relpath(dto.dest_relpath)
        src_abspath = self._inside(space_abspath, src)
        dest_abspath = self._inside(space_abspath, dest)

        if not src_abspath.exists():
            raise NotFoundError(f"{src}: nothing to move")
        if dest_abspath.exists():
            raise IoError(f"{dest}: destination already exists")
        if dest.startswith(src + "/"):
            raise SanitizationError(f"Cannot move {src!r} into itself")
        if src_abspath.is_file() and not dest.endswith(REQUEST_EXT):
            raise SanitizationError(f"Request destination must end with {REQUEST_EXT}: {dest!r}")
        if not dest_abspath.parent.is_dir():
            raise NotFoundError(f"{dest_abspath.parent}: destination collection not found")

        try:
            os.rename(src_abspath, dest_abspath)
        except OSError as e:
            raise IoError.from_os_error(src_abspath, e) from e

        names = self._display_names(space_abspath)
        moved = rekey_prefix(names, src, dest)
        if moved != names:
            write_display_names(space_abspath, moved)
        self.buffers.load(space_abspath).rekey(src, dest)
        logger.info("Moved %s to %s", src, dest)
        return self._refresh(space_abspath)

    def delete_tree_item(self, relpath: str) -> Space:
        """Delete a collection directory or a request document."""
        space_abspath = self._active_abspath()
        relpath = normalize_relpath(relpath)
        target = self._inside(space_abspath, relpath)

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.is_file():
                target.unlink()
            else:
                raise NotFoundError(f"{relpath}: nothing to delete")
        except OSError as e:
            raise IoError.from_os_error(target, e) from e

        names = self._display_names(space_abspath)
        kept = {
            k: v for k, v in names.items() if k != relpath and not k.startswith(relpath + "/")
        }
        if kept != names:
            write_display_names(space_abspath, kept)
        self.buffers.load(space_abspath).drop_prefix(relpath)
        return self._refresh(space_abspath)

    def set_collection_expanded(self, relpath: str, is_expanded: bool) -> Space:
        space_abspath = self._active_abspath()
        self.buffers.load(space_abspath).set_collection_expanded(relpath, is_expanded)
        return self._refresh(space_abspath)

    # -- requests ---------------------------------------------------------------

    def create_request(self, dto: CreateRequestDto) -> CreatedItem:
        """Create a request document.

        ``dto.relpath`` may carry collections before the last ``/``; they are
        created first.  The last segment is the request's display name.
        """
        space_abspath = self._active_abspath()
        raw = dto.relpath.strip()
        if not raw:
            raise SanitizationError("Cannot create a request without name")
        if not dto.method.strip():
            raise ZakuError("Request method must not be empty")

        head, _, tail = raw.rpartition("/")
        dir_segments = to_sanitized_segments(head)
        name_segments = to_sanitized_segments(tail)
        if not name_segments:
            raise SanitizationError(f"Empty name after sanitization: {tail!r}")
        segment = name_segments[0]

        parent = normalize_relpath(dto.parent_relpath)
        if dir_segments:
            parent = self._create_collections(space_abspath, parent, dir_segments)
        elif not resolve_inside(space_abspath, parent, allow_root=True).is_dir():
            raise NotFoundError(f"{parent}: parent collection not found")

        filename = f"{segment.fsname}{REQUEST_EXT}"
        target = space_abspath / parent / filename
        if target.exists():
            raise IoError(f"{target}: request already exists")
        create_request_file(target, segment.name, dto.method.strip())

        self._refresh(space_abspath)
        return CreatedItem(parent_relpath=parent, relpath=join_relpaths(parent, filename))

    def save_request_draft(self, parent_relpath: str, req: HttpReq) -> str:
        """Buffer an edited request.  Returns the draft's relpath."""
        space_abspath = self._active_abspath()
        relpath = self.buffers.load(space_abspath).upsert(parent_relpath, req)
        self._refresh(space_abspath)
        return relpath

    def commit_request(self, relpath: str) -> Space:
        space_abspath = self._active_abspath()
        self.buffers.load(space_abspath).commit(relpath)
        return self._refresh(space_abspath)

    def discard_request_draft(self, relpath: str) -> bool:
        space_abspath = self._active_abspath()
        discarded = self.buffers.load(space_abspath).discard(relpath)
        self._refresh(space_abspath)
        return discarded

    def send_request(
        self,
        req: HttpReq,
        transport: Transport | None = None,
        notifier: Notifier | None = None,
    ) -> HttpRes:
        """Send ``req`` with the active space's cookies and persist the jar afterwards."""
        space_abspath = self._active_abspath()
        transport = transport or RequestsTransport()
        jar = self.cookies.load(space_abspath)
        settings = SpaceSettingsStore.get(
            self.datadir,
            space_abspath,
            default_theme=self.state_store.user_settings.default_theme,
        ).into_inner()

        with jar.detached() as working_jar:
            res = transport.send(req.config, working_jar)

        if notifier is not None and settings.notifications.audio.on_request_finish:
            notifier.play_finish_sound()
        self.cookies.persist(space_abspath)
        self._refresh(space_abspath)
        return res

    # -- cookies and settings ---------------------------------------------------

    def get_space_cookies(self, space_abspath: str | Path) -> dict[str, list[SpaceCookie]]:
        return self.cookies.cookies_by_domain(space_abspath)

    def remove_cookie(self, space_abspath: str | Path, dto: RemoveCookieDto) -> bool:
        removed = self.cookies.remove(space_abspath, dto)
        if removed:
            self._refresh_if_active(space_abspath)
        return removed

    def clear_cookies(self, space_abspath: str | Path) -> None:
        self.cookies.clear(space_abspath)
        self._refresh_if_active(space_abspath)

    def save_space_settings(self, space_abspath: str | Path, settings: SpaceSettings) -> None:
        SpaceSettingsStore(sst_store_abspath(self.datadir, space_abspath), settings).persist()
        self._refresh_if_active(space_abspath)

    def set_default_theme(self, theme: Theme) -> None:
        """Change the theme new space settings start from."""

        def _set(state: State) -> None:
            state.user_settings.default_theme = theme

        self.state_store.update(_set)
        self.shared.replace_user_settings(self.state_store.user_settings)


__all__ = ["SpaceService"]
