"""Per-space settings stored at ``{datadir}/spaces/{hash}/settings.json``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from zaku.errors import InvalidFormatError
from zaku.models.space import SpaceSettings, Theme
from zaku.store.utils import read_json, sst_store_abspath, write_json_atomic

logger = logging.getLogger(__name__)


class SpaceSettingsStore:
    """Handle on one space's settings file.

    Missing or malformed files yield defaults, and the defaults are written
    back so the file is valid afterwards.  New settings take their theme
    from the user's default theme.
    """

    def __init__(self, abspath: Path, settings: SpaceSettings) -> None:
        self.abspath = abspath
        self.settings = settings

    @classmethod
    def get(
        cls,
        datadir: str | Path,
        space_abspath: str | Path,
        default_theme: Theme = Theme.SYSTEM,
    ) -> SpaceSettingsStore:
        abspath = sst_store_abspath(Path(datadir), space_abspath)
        try:
            data = read_json(abspath)
            if not isinstance(data, dict):
                raise InvalidFormatError(f"{abspath}: expected a JSON object")
            return cls(abspath, SpaceSettings.from_dict(data))
        except FileNotFoundError:
            pass
        except (InvalidFormatError, KeyError, TypeError, ValueError) as e:
            logger.warning("Resetting corrupt space settings %s: %s", abspath, e)

        store = cls(abspath, SpaceSettings(theme=default_theme))
        store.persist()
        return store

    def persist(self) -> None:
        """Rewrite the whole settings file."""
        write_json_atomic(self.abspath, self.settings.to_dict())

    def update(self, mutator: Callable[[SpaceSettings], None]) -> None:
        mutator(self.settings)
        self.persist()

    def replace(self, settings: SpaceSettings) -> None:
        self.settings = settings
        self.persist()

    def into_inner(self) -> SpaceSettings:
        return self.settings


__all__ = ["SpaceSettingsStore"]
