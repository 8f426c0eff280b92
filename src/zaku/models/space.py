"""Space-level models: references, cookies, settings and the parsed snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from zaku.models.collection import Collection


class Theme(str, Enum):
    SYSTEM = "System"
    LIGHT = "Light"
    DARK = "Dark"

    @classmethod
    def parse(cls, value: Any) -> Theme:
        """Strict lookup by value; raises ``ValueError`` on unknown themes."""
        return cls(value)


@dataclass(frozen=True)
class SpaceReference:
    """Durable pointer to a space directory, kept in the application state."""

    path: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpaceReference:
        return cls(path=str(data["path"]), name=str(data["name"]))


@dataclass
class SpaceMeta:
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass
class SpaceCookie:
    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None
    expires: str | None = None  # RFC 3339

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "secure": self.secure,
            "http_only": self.http_only,
            "same_site": self.same_site,
            "expires": self.expires,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpaceCookie:
        return cls(
            name=str(data["name"]),
            value=str(data.get("value", "")),
            domain=str(data.get("domain", "")),
            path=str(data.get("path") or "/"),
            secure=bool(data.get("secure", False)),
            http_only=bool(data.get("http_only", False)),
            same_site=data.get("same_site"),
            expires=data.get("expires"),
        )


@dataclass
class AudioNotification:
    on_request_finish: bool = False


@dataclass
class NotificationSettings:
    audio: AudioNotification = field(default_factory=AudioNotification)


@dataclass
class SpaceSettings:
    theme: Theme = Theme.SYSTEM
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme.value,
            "notifications": {
                "audio": {
                    "on_request_finish": self.notifications.audio.on_request_finish,
                },
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpaceSettings:
        """Strict parse: malformed input raises ``KeyError``, ``TypeError`` or ``ValueError``."""
        audio = data["notifications"]["audio"]
        on_finish = audio["on_request_finish"]
        if not isinstance(on_finish, bool):
            raise TypeError("on_request_finish must be a boolean")
        return cls(
            theme=Theme.parse(data["theme"]),
            notifications=NotificationSettings(AudioNotification(on_finish)),
        )


@dataclass
class Space:
    """Parsed, read-only view of a space directory and its sidecar state."""

    abspath: str
    meta: SpaceMeta
    root_collection: Collection
    cookies: dict[str, list[SpaceCookie]] = field(default_factory=dict)
    settings: SpaceSettings = field(default_factory=SpaceSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "abspath": self.abspath,
            "meta": self.meta.to_dict(),
            "root_collection": self.root_collection.to_dict(),
            "cookies": {
                domain: [c.to_dict() for c in cookies]
                for domain, cookies in self.cookies.items()
            },
            "settings": self.settings.to_dict(),
        }


@dataclass(frozen=True)
class CreateSpaceDto:
    name: str
    location: str


@dataclass(frozen=True)
class RemoveCookieDto:
    domain: str
    path: str
    name: str


__all__ = [
    "AudioNotification",
    "CreateSpaceDto",
    "NotificationSettings",
    "RemoveCookieDto",
    "Space",
    "SpaceCookie",
    "SpaceMeta",
    "SpaceReference",
    "SpaceSettings",
    "Theme",
]
