"""On-disk stores kept in the application data directory."""

from zaku.store.buffer import BufferRegistry, BufferView, SpaceBufferStore
from zaku.store.cookie import CookieRegistry, SpaceCookieJar
from zaku.store.settings import SpaceSettingsStore
from zaku.store.state import State, StateStore, UserSettings

__all__ = [
    "BufferRegistry",
    "BufferView",
    "CookieRegistry",
    "SpaceBufferStore",
    "SpaceCookieJar",
    "SpaceSettingsStore",
    "State",
    "StateStore",
    "UserSettings",
]
