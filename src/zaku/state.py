"""Process-wide snapshot of the open space, shared with command handlers.

Handlers never edit the snapshot in place.  They take a deep copy with
``snapshot()`` and, after a mutation, hand a freshly parsed ``Space`` to
``replace_space``.  The mutex is held only for the copy or the swap.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from zaku.errors import ZakuError
from zaku.models.space import Space, SpaceReference
from zaku.store.state import UserSettings

if TYPE_CHECKING:
    from zaku.space import SpaceService

logger = logging.getLogger(__name__)


@dataclass
class SharedState:
    space: Space | None = None
    spacerefs: list[SpaceReference] = field(default_factory=list)
    user_settings: UserSettings = field(default_factory=UserSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "space": self.space.to_dict() if self.space else None,
            "spacerefs": [ref.to_dict() for ref in self.spacerefs],
            "user_settings": self.user_settings.to_dict(),
        }


class SharedStateHolder:
    def __init__(self, state: SharedState | None = None) -> None:
        self._state = state if state is not None else SharedState()
        self._lock = threading.Lock()

    def snapshot(self) -> SharedState:
        """Deep copy of the current state; safe to read without the lock."""
        with self._lock:
            return copy.deepcopy(self._state)

    def replace(self, state: SharedState) -> None:
        with self._lock:
            self._state = state

    def replace_space(
        self,
        space: Space | None,
        spacerefs: list[SpaceReference] | None = None,
    ) -> None:
        """Swap the open space, and the known refs when given."""
        with self._lock:
            self._state = dataclasses.replace(
                self._state,
                space=space,
                spacerefs=list(spacerefs) if spacerefs is not None else self._state.spacerefs,
            )

    def replace_spacerefs(self, spacerefs: list[SpaceReference]) -> None:
        with self._lock:
            self._state = dataclasses.replace(self._state, spacerefs=list(spacerefs))

    def replace_user_settings(self, user_settings: UserSettings) -> None:
        with self._lock:
            self._state = dataclasses.replace(
                self._state, user_settings=copy.deepcopy(user_settings)
            )


def initialize(service: SpaceService) -> SharedState:
    """Open the active space (or the first valid one) and publish it.

    If the active space cannot be parsed, every other valid ref is tried in
    order; the one that opens becomes the persisted active ref.
    """
    store = service.state_store
    target = store.get_spaceref() or service.first_valid_spaceref()
    space = None

    if target is not None:
        try:
            space = service.parse_space(target.path)
        except ZakuError as e:
            logger.warning("Unable to open space %s: %s", target.path, e)
            for ref in store.get_spacerefs():
                if ref.path == target.path:
                    continue
                try:
                    space = service.parse_space(ref.path)
                except ZakuError as err:
                    logger.debug("Skipping space %s: %s", ref.path, err)
                    continue
                store.set_spaceref(ref)
                break
        else:
            if store.get_spaceref() != target:
                store.set_spaceref(target)

    state = SharedState(
        space=space,
        spacerefs=store.get_spacerefs(),
        user_settings=copy.deepcopy(store.user_settings),
    )
    service.shared.replace(copy.deepcopy(state))
    return state


__all__ = ["SharedState", "SharedStateHolder", "initialize"]
