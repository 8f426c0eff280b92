"""Persistent space store for the Zaku HTTP client.

Quick start::

    from zaku import SpaceService
    from zaku.models import CreateSpaceDto

    service = SpaceService("~/.local/share/Zaku")
    service.create_space(CreateSpaceDto(name="My API", location="/home/me/code"))
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from zaku.errors import ZakuError
from zaku.space import SpaceService
from zaku.state import SharedState, SharedStateHolder, initialize

try:
    __version__ = version("zaku")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "SharedState",
    "SharedStateHolder",
    "SpaceService",
    "ZakuError",
    "__version__",
    "initialize",
]
