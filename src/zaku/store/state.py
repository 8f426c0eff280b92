"""Global application state: known spaces, the active one, user settings.

Stored as a single JSON document at ``{datadir}/state.json``::

    {
      "spaceref": {"path": "...", "name": "..."} | null,
      "spacerefs": [{"path": "...", "name": "..."}],
      "user_settings": {"default_theme": "System" | "Light" | "Dark"}
    }

There is no in-memory sharing: every ``StateStore.get`` re-reads the file
and every ``update`` writes it back.  Concurrent updates are last writer
wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from zaku.errors import InvalidFormatError
from zaku.models.space import SpaceReference, Theme
from zaku.store.utils import read_json, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class UserSettings:
    default_theme: Theme = Theme.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        return {"default_theme": self.default_theme.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserSettings:
        return cls(default_theme=Theme.parse(data["default_theme"]))


@dataclass
class State:
    spaceref: SpaceReference | None = None
    spacerefs: list[SpaceReference] = field(default_factory=list)
    user_settings: UserSettings = field(default_factory=UserSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "spaceref": self.spaceref.to_dict() if self.spaceref else None,
            "spacerefs": [ref.to_dict() for ref in self.spacerefs],
            "user_settings": self.user_settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> State:
        """Strict parse; any shape mismatch raises ``InvalidFormatError``."""
        try:
            spaceref = data["spaceref"]
            return cls(
                spaceref=SpaceReference.from_dict(spaceref) if spaceref else None,
                spacerefs=[SpaceReference.from_dict(r) for r in data["spacerefs"]],
                user_settings=UserSettings.from_dict(data["user_settings"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidFormatError(f"invalid state document: {e}") from e


class StateStore:
    """Handle on ``state.json``.  Obtain one with ``StateStore.get``."""

    def __init__(self, abspath: Path, state: State | None = None) -> None:
        self.abspath = Path(abspath)
        self._state = state if state is not None else State()

    @classmethod
    def get(cls, abspath: str | Path) -> StateStore:
        """Load the state document.

        A missing file is created with defaults.  A file that cannot be
        parsed is overwritten with defaults so the app can still start.
        """
        abspath = Path(abspath)
        try:
            data = read_json(abspath)
            if not isinstance(data, dict):
                raise InvalidFormatError(f"{abspath}: expected a JSON object")
            return cls(abspath, State.from_dict(data))
        except FileNotFoundError:
            pass
        except InvalidFormatError as e:
            logger.warning("Resetting corrupt state store %s: %s", abspath, e)

        store = cls(abspath)
        store.fswrite()
        return store

    @property
    def state(self) -> State:
        return self._state

    @property
    def datadir(self) -> Path:
        """The data directory is the parent of ``state.json``."""
        return self.abspath.parent

    @property
    def spaceref(self) -> SpaceReference | None:
        return self._state.spaceref

    @property
    def spacerefs(self) -> list[SpaceReference]:
        return list(self._state.spacerefs)

    @property
    def user_settings(self) -> UserSettings:
        return self._state.user_settings

    def fswrite(self) -> None:
        write_json_atomic(self.abspath, self._state.to_dict())

    def update(self, mutator: Callable[[State], None]) -> None:
        """Apply ``mutator`` to the inner state and write it through."""
        mutator(self._state)
        self.fswrite()

    # -- convenience accessors ------------------------------------------------

    def get_spaceref(self) -> SpaceReference | None:
        return self._state.spaceref

    def set_spaceref(self, spaceref: SpaceReference | None) -> None:
        def _set(state: State) -> None:
            state.spaceref = spaceref

        self.update(_set)

    def get_spacerefs(self) -> list[SpaceReference]:
        return list(self._state.spacerefs)

    def insert_spaceref_if_missing(self, spaceref: SpaceReference) -> bool:
        """Append ``spaceref`` unless one with the same path exists.  Returns ``True`` if added."""
        if any(ref.path == spaceref.path for ref in self._state.spacerefs):
            return False
        self.update(lambda state: state.spacerefs.append(spaceref))
        return True

    def remove_spaceref(self, spaceref: SpaceReference) -> None:
        """Forget a space.  Clears the active ref too if it pointed there."""

        def _remove(state: State) -> None:
            state.spacerefs = [ref for ref in state.spacerefs if ref.path != spaceref.path]
            if state.spaceref is not None and state.spaceref.path == spaceref.path:
                state.spaceref = None

        self.update(_remove)

    def into_inner(self) -> State:
        return self._state


__all__ = ["State", "StateStore", "UserSettings"]
