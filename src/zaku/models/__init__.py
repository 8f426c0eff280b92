"""Space store data models."""

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
from zaku.models.request import HttpReq, HttpRes, ReqBuf, ReqCfg, ReqMeta, ReqStatus
from zaku.models.collection import (
    Collection,
    CollectionMeta,
    CreateCollectionDto,
    CreatedItem,
    MoveTreeItemDto,
)

__all__ = [
    "Collection",
    "CollectionMeta",
    "CreateCollectionDto",
    "CreateSpaceDto",
    "CreatedItem",
    "HttpReq",
    "HttpRes",
    "MoveTreeItemDto",
    "RemoveCookieDto",
    "ReqBuf",
    "ReqCfg",
    "ReqMeta",
    "ReqStatus",
    "Space",
    "SpaceCookie",
    "SpaceMeta",
    "SpaceReference",
    "SpaceSettings",
    "Theme",
]
