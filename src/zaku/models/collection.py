"""Collection tree model.  A collection is a directory inside a space."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from zaku.models.request import HttpReq
from zaku.sanitize import join_relpaths


@dataclass
class CollectionMeta:
    fsname: str
    relpath: str
    display_name: str | None = None
    is_expanded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "fsname": self.fsname,
            "display_name": self.display_name,
            "is_expanded": self.is_expanded,
            "relpath": self.relpath,
        }


@dataclass
class Collection:
    meta: CollectionMeta
    requests: list[HttpReq] = field(default_factory=list)
    collections: list[Collection] = field(default_factory=list)

    def walk(self) -> Iterator[Collection]:
        """Yield this collection and every descendant, depth first."""
        yield self
        for child in self.collections:
            yield from child.walk()

    def find_collection(self, relpath: str) -> Collection | None:
        for col in self.walk():
            if col.meta.relpath == relpath:
                return col
        return None

    def find_request(self, relpath: str) -> HttpReq | None:
        """Look up a request by its relpath (``parent/name.toml``)."""
        for col in self.walk():
            for req in col.requests:
                if join_relpaths(col.meta.relpath, req.filename) == relpath:
                    return req
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "requests": [r.to_dict() for r in self.requests],
            "collections": [c.to_dict() for c in self.collections],
        }


@dataclass(frozen=True)
class CreateCollectionDto:
    parent_relpath: str
    relpath: str


@dataclass(frozen=True)
class MoveTreeItemDto:
    src_relpath: str
    dest_relpath: str


@dataclass(frozen=True)
class CreatedItem:
    """Result of a create command: where the new item landed."""

    parent_relpath: str
    relpath: str

    def to_dict(self) -> dict[str, Any]:
        return {"parent_relpath": self.parent_relpath, "relpath": self.relpath}


__all__ = [
    "Collection",
    "CollectionMeta",
    "CreateCollectionDto",
    "CreatedItem",
    "MoveTreeItemDto",
]
