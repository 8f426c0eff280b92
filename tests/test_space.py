"""Tests for the space facade."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from zaku.errors import InvalidFormatError, IoError, NotFoundError, SanitizationError, ZakuError
from zaku.models.collection import CreateCollectionDto, MoveTreeItemDto
from zaku.models.request import CreateRequestDto, HttpReq, HttpRes, ReqBuf, ReqCfg
from zaku.models.serialization import read_display_names, read_request
from zaku.models.space import (
    AudioNotification,
    CreateSpaceDto,
    NotificationSettings,
    RemoveCookieDto,
    SpaceCookie,
    SpaceReference,
    SpaceSettings,
    Theme,
)
from zaku.space import SpaceService
from zaku.state import initialize
from zaku.store.cookie import space_cookie_to_cookie
from zaku.store.utils import sbf_store_abspath, sck_store_abspath


class FakeTransport:
    """Records the request and sets a cookie like a server would."""

    def __init__(self) -> None:
        self.sent: list[ReqCfg] = []

    def send(self, config, cookie_jar):
        self.sent.append(config)
        cookie = SpaceCookie(name="sid", value="s3cr3t", domain="example.com")
        cookie_jar.set_cookie(space_cookie_to_cookie(cookie))
        return HttpRes(data="ok", status=200, cookies=[cookie], size_bytes=2, elapsed_ms=5)


class FakeNotifier:
    def __init__(self) -> None:
        self.sounds = 0

    def notify(self, title, body):
        pass

    def play_finish_sound(self):
        self.sounds += 1


class TestCreateSpace:
    def test_create_then_parse(self, service, workdir):
        ref = service.create_space(CreateSpaceDto(name="My Space", location=str(workdir)))
        assert ref == SpaceReference(path=str(workdir / "my-space"), name="My Space")

        space = service.parse_space(workdir / "my-space")
        assert space.meta.name == "My Space"
        assert space.root_collection.collections == []
        assert (workdir / "my-space" / "zaku.toml").is_file()
        assert (workdir / "my-space" / ".zaku" / "collections").is_dir()

    def test_records_and_activates(self, service, space):
        assert service.state_store.get_spaceref().path == str(space)
        shared = service.shared.snapshot()
        assert shared.space.meta.name == "My Space"
        assert [r.path for r in shared.spacerefs] == [str(space)]

    def test_missing_location(self, service, tmp_path):
        with pytest.raises(NotFoundError):
            service.create_space(CreateSpaceDto(name="X", location=str(tmp_path / "nope")))

    def test_bad_name_has_no_side_effect(self, service, workdir):
        with pytest.raises(SanitizationError):
            service.create_space(CreateSpaceDto(name="Con", location=str(workdir)))
        assert list(workdir.iterdir()) == []
        assert service.state_store.get_spacerefs() == []

    def test_existing_directory(self, service, workdir):
        (workdir / "taken").mkdir()
        with pytest.raises(IoError):
            service.create_space(CreateSpaceDto(name="Taken", location=str(workdir)))

    def test_known_spaceref(self, service, space, workdir):
        with pytest.raises(ZakuError):
            service.create_space(CreateSpaceDto(name="My Space", location=str(workdir)))

    def test_new_space_inherits_default_theme(self, service, workdir):
        service.set_default_theme(Theme.DARK)
        service.create_space(CreateSpaceDto(name="Dark One", location=str(workdir)))
        assert service.shared.snapshot().space.settings.theme == Theme.DARK


class TestSpaceRefs:
    def test_first_valid_skips_broken(self, service, space, workdir):
        broken = SpaceReference(path=str(workdir / "gone"), name="Gone")
        service.state_store.update(lambda s: s.spacerefs.insert(0, broken))
        assert service.first_valid_spaceref().path == str(space)

    def test_get_spaceref(self, service, space):
        assert service.get_spaceref(space) == SpaceReference(path=str(space), name="My Space")

    def test_get_spaceref_invalid(self, service, workdir):
        with pytest.raises(NotFoundError):
            service.get_spaceref(workdir)

    def test_set_active_space(self, service, space, workdir, make_space):
        other = make_space(workdir, "other", "Other")
        ref = service.get_spaceref(other)
        parsed = service.set_active_space(ref)

        assert parsed.meta.name == "Other"
        assert service.state_store.get_spaceref() == ref
        assert ref in service.state_store.get_spacerefs()
        assert service.shared.snapshot().space.meta.name == "Other"

    def test_set_active_space_missing_dir(self, service, workdir):
        with pytest.raises(NotFoundError):
            service.set_active_space(SpaceReference(path=str(workdir / "nope"), name="Nope"))

    def test_delete_active_falls_back(self, service, space, workdir):
        second = service.create_space(CreateSpaceDto(name="Second", location=str(workdir)))
        service.delete_space(second)

        assert service.state_store.get_spaceref().path == str(space)
        assert (workdir / "second").is_dir()
        shared = service.shared.snapshot()
        assert shared.space.meta.name == "My Space"
        assert [r.name for r in shared.spacerefs] == ["My Space"]

    def test_delete_last_space(self, service, space):
        ref = service.state_store.get_spaceref()
        assert service.delete_space(ref) is None
        assert service.state_store.get_spaceref() is None
        assert service.shared.snapshot().space is None

    def test_delete_inactive_keeps_active(self, service, space, workdir):
        second = service.create_space(CreateSpaceDto(name="Second", location=str(workdir)))
        first = SpaceReference(path=str(space), name="My Space")
        service.delete_space(first)
        assert service.state_store.get_spaceref() == second
        assert [r.name for r in service.shared.snapshot().spacerefs] == ["Second"]


class TestCollections:
    def test_create_nested(self, service, space):
        item = service.create_collection(
            CreateCollectionDto(parent_relpath="", relpath="Parent Col/Child Col")
        )
        assert item.parent_relpath == ""
        assert item.relpath == "parent-col/child-col"
        assert (space / "parent-col" / "child-col").is_dir()
        assert read_display_names(space) == {
            "parent-col": "Parent Col",
            "parent-col/child-col": "Child Col",
        }

        root = service.shared.snapshot().space.root_collection
        assert root.find_collection("parent-col/child-col").meta.display_name == "Child Col"

    def test_existing_display_name_kept(self, service, space):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Users"))
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="USERS/Admin"))
        assert read_display_names(space)["users"] == "Users"

    def test_create_under_parent(self, service, space):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Users"))
        item = service.create_collection(
            CreateCollectionDto(parent_relpath="/users/", relpath="Admin")
        )
        assert item.parent_relpath == "users"
        assert item.relpath == "users/admin"

    def test_invalid_segment_has_no_side_effect(self, service, space):
        with pytest.raises(SanitizationError):
            service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Ok/LPT1"))
        assert not (space / "ok").exists()

    def test_empty_name(self, service, space):
        with pytest.raises(SanitizationError):
            service.create_collection(CreateCollectionDto(parent_relpath="", relpath=" / "))

    def test_parent_outside_space_rejected(self, service, space):
        with pytest.raises(SanitizationError):
            service.create_collection(CreateCollectionDto(parent_relpath="..", relpath="Evil"))
        assert not (space.parent / "evil").exists()

    def test_rename_collection(self, service, space):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Users"))
        parsed = service.rename_collection("users", "People")
        assert parsed.root_collection.find_collection("users").meta.display_name == "People"
        assert (space / "users").is_dir()

    def test_rename_missing_collection(self, service, space):
        with pytest.raises(NotFoundError):
            service.rename_collection("ghost", "Ghost")

    def test_rename_rebuilds_corrupt_index(self, service, space):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Users"))
        (space / ".zaku" / "collections" / "name.toml").write_text("[[[", encoding="utf-8")
        service.rename_collection("users", "People")
        assert read_display_names(space) == {"users": "People"}

    def test_set_collection_expanded(self, service, space):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Users"))
        parsed = service.set_collection_expanded("users", True)
        assert parsed.root_collection.find_collection("users").meta.is_expanded is True


class TestRequests:
    def test_create_request(self, service, space):
        item = service.create_request(
            CreateRequestDto(parent_relpath="", relpath="Get User", method="GET")
        )
        assert item.parent_relpath == ""
        assert item.relpath == "get-user.toml"
        req = read_request(space / "get-user.toml")
        assert req.meta.display_name == "Get User"
        assert req.config.method == "GET"

    def test_create_request_with_collections(self, service, space):
        item = service.create_request(
            CreateRequestDto(parent_relpath="", relpath="Users/Admin/Delete User", method="DELETE")
        )
        assert item.parent_relpath == "users/admin"
        assert item.relpath == "users/admin/delete-user.toml"
        assert read_display_names(space)["users/admin"] == "Admin"

        root = service.shared.snapshot().space.root_collection
        req = root.find_request("users/admin/delete-user.toml")
        assert req.config.method == "DELETE"

    def test_create_request_twice(self, service, space):
        dto = CreateRequestDto(parent_relpath="", relpath="Ping")
        service.create_request(dto)
        with pytest.raises(IoError):
            service.create_request(dto)

    def test_create_request_without_name(self, service, space):
        with pytest.raises(SanitizationError):
            service.create_request(CreateRequestDto(parent_relpath="", relpath="  "))
        with pytest.raises(SanitizationError):
            service.create_request(CreateRequestDto(parent_relpath="", relpath="Users/"))

    def test_draft_commit(self, service, space, datadir):
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Coll"))
        service.create_request(CreateRequestDto(parent_relpath="coll", relpath="Req"))
        original = service.parse_space(space).root_collection.find_request("coll/req.toml")

        edited = HttpReq(meta=original.meta, config=ReqCfg(method="POST", body='{"a": 1}'))
        assert service.save_request_draft("coll", edited) == "coll/req.toml"

        drafted = service.parse_space(space).root_collection.find_request("coll/req.toml")
        assert drafted.config.body == '{"a": 1}'
        assert drafted.meta.has_unsaved_changes is True

        service.commit_request("coll/req.toml")
        committed = service.parse_space(space).root_collection.find_request("coll/req.toml")
        assert committed.config.body == '{"a": 1}'
        assert committed.meta.has_unsaved_changes is False

        doc = json.loads(sbf_store_abspath(datadir, space).read_text(encoding="utf-8"))
        assert "coll/req.toml" not in doc["requests"]

    def test_discard_draft(self, service, space):
        service.create_request(CreateRequestDto(parent_relpath="", relpath="Ping"))
        req = service.parse_space(space).root_collection.find_request("ping.toml")
        req.config.url = "https://example.com/draft"
        service.save_request_draft("", req)

        assert service.discard_request_draft("ping.toml") is True
        restored = service.shared.snapshot().space.root_collection.find_request("ping.toml")
        assert restored.config.url is None
        assert restored.meta.has_unsaved_changes is False

    def test_commit_missing_document(self, service, space):
        with pytest.raises(NotFoundError):
            service.commit_request("nope.toml")

    @pytest.mark.parametrize("relpath", ["Evil", "Nested/Evil"])
    def test_create_request_parent_outside_space(self, service, space, relpath):
        with pytest.raises(SanitizationError):
            service.create_request(CreateRequestDto(parent_relpath="..", relpath=relpath))
        assert not (space.parent / "evil.toml").exists()
        assert not (space.parent / "nested").exists()

    def test_draft_outside_space_rejected(self, service, space, sample_request):
        with pytest.raises(SanitizationError):
            service.save_request_draft("..", sample_request)
        assert service.buffers.load(space).get("../get-user.toml") is None

    def test_commit_outside_space_rejected(self, service, space, sample_request):
        victim = space.parent / "victim.toml"
        victim.write_text("[meta]\nname = \"Victim\"\n", encoding="utf-8")
        service.buffers.load(space).requests["../victim.toml"] = ReqBuf.from_req(sample_request)
        with pytest.raises(SanitizationError):
            service.commit_request("../victim.toml")
        assert victim.read_text(encoding="utf-8") == "[meta]\nname = \"Victim\"\n"

    def test_operations_need_active_space(self, service):
        with pytest.raises(NotFoundError):
            service.create_request(CreateRequestDto(parent_relpath="", relpath="Ping"))


class TestMoveAndDelete:
    @pytest.fixture()
    def tree(self, service, space) -> Path:
        service.create_request(CreateRequestDto(parent_relpath="", relpath="Users/Admin/Audit"))
        service.create_collection(CreateCollectionDto(parent_relpath="", relpath="Archive"))
        return space

    def test_move_collection_rekeys_index_and_buffer(self, service, tree):
        req = service.parse_space(tree).root_collection.find_request("users/admin/audit.toml")
        req.config.url = "https://example.com/audit"
        service.save_request_draft("users/admin", req)
        service.set_collection_expanded("users/admin", True)

        parsed = service.move_tree_item(MoveTreeItemDto("users", "archive/users"))

        assert (tree / "archive" / "users" / "admin" / "audit.toml").is_file()
        assert not (tree / "users").exists()
        names = read_display_names(tree)
        assert names["archive/users"] == "Users"
        assert names["archive/users/admin"] == "Admin"
        assert "users" not in names

        moved = parsed.root_collection.find_request("archive/users/admin/audit.toml")
        assert moved.meta.has_unsaved_changes is True
        assert moved.config.url == "https://example.com/audit"
        admin = parsed.root_collection.find_collection("archive/users/admin")
        assert admin.meta.is_expanded is True

    def test_move_request(self, service, tree):
        service.move_tree_item(MoveTreeItemDto("users/admin/audit.toml", "archive/audit.toml"))
        assert read_request(tree / "archive" / "audit.toml").meta.display_name == "Audit"

    def test_move_request_needs_extension(self, service, tree):
        with pytest.raises(SanitizationError):
            service.move_tree_item(MoveTreeItemDto("users/admin/audit.toml", "archive/audit"))

    def test_move_outside_root(self, service, tree):
        with pytest.raises(SanitizationError):
            service.move_tree_item(MoveTreeItemDto("users", "../escaped"))
        assert (tree / "users").is_dir()

    def test_move_into_itself(self, service, tree):
        with pytest.raises(SanitizationError):
            service.move_tree_item(MoveTreeItemDto("users", "users/admin/users"))

    def test_move_missing_source(self, service, tree):
        with pytest.raises(NotFoundError):
            service.move_tree_item(MoveTreeItemDto("ghost", "archive/ghost"))

    def test_move_onto_existing(self, service, tree):
        with pytest.raises(IoError):
            service.move_tree_item(MoveTreeItemDto("users", "archive"))

    def test_delete_collection(self, service, tree):
        parsed = service.delete_tree_item("users")
        assert not (tree / "users").exists()
        assert parsed.root_collection.find_collection("users") is None
        assert "users/admin" not in read_display_names(tree)

    def test_delete_request(self, service, tree):
        service.delete_tree_item("users/admin/audit.toml")
        assert not (tree / "users" / "admin" / "audit.toml").exists()

    def test_delete_root_refused(self, service, tree):
        with pytest.raises(SanitizationError):
            service.delete_tree_item("")

    def test_delete_missing(self, service, tree):
        with pytest.raises(NotFoundError):
            service.delete_tree_item("ghost")


class TestCookiesAndSettings:
    def test_send_request_persists_cookies(self, service, space, datadir):
        transport = FakeTransport()
        notifier = FakeNotifier()
        req = HttpReq.from_dict({
            "meta": {"fsname": "ping", "display_name": "Ping"},
            "config": {"method": "GET", "url": "https://example.com/ping"},
        })

        res = service.send_request(req, transport, notifier)

        assert res.status == 200
        assert transport.sent[0].url == "https://example.com/ping"
        assert notifier.sounds == 0
        records = json.loads(sck_store_abspath(datadir, space).read_text(encoding="utf-8"))
        assert [r["name"] for r in records] == ["sid"]
        assert "example.com" in service.shared.snapshot().space.cookies

    def test_send_request_plays_sound_when_enabled(self, service, space):
        service.save_space_settings(
            str(space),
            SpaceSettings(notifications=NotificationSettings(AudioNotification(True))),
        )
        notifier = FakeNotifier()
        req = HttpReq.from_dict({"meta": {"fsname": "p"}, "config": {"url": "https://x.test"}})
        service.send_request(req, FakeTransport(), notifier)
        assert notifier.sounds == 1

    def test_transport_failure_propagates(self, service, space):
        class Failing:
            def send(self, config, cookie_jar):
                cookie = SpaceCookie(name="half", value="1", domain="x.test")
                cookie_jar.set_cookie(space_cookie_to_cookie(cookie))
                raise ZakuError("connection refused")

        req = HttpReq.from_dict({"meta": {"fsname": "p"}, "config": {"url": "https://x.test"}})
        with pytest.raises(ZakuError, match="refused"):
            service.send_request(req, Failing())
        assert service.get_space_cookies(str(space)) == {}

    def test_cookies_readable_while_sending(self, service, space):
        seen = []

        class Slow(FakeTransport):
            def send(self, config, cookie_jar):
                reader = threading.Thread(
                    target=lambda: seen.append(service.get_space_cookies(str(space)))
                )
                reader.start()
                reader.join(timeout=5)
                assert not reader.is_alive()
                return super().send(config, cookie_jar)

        req = HttpReq.from_dict({"meta": {"fsname": "p"}, "config": {"url": "https://x.test"}})
        service.send_request(req, Slow())
        assert seen == [{}]
        assert "example.com" in service.get_space_cookies(str(space))

    def test_remove_and_clear_cookies(self, service, space):
        jar = service.cookies.load(str(space))
        jar.set_cookie(SpaceCookie(name="a", value="1", domain="example.com"))
        jar.set_cookie(SpaceCookie(name="b", value="2", domain="other.test"))
        service.cookies.persist(str(space))

        assert sorted(service.get_space_cookies(str(space))) == ["example.com", "other.test"]
        dto = RemoveCookieDto(domain="example.com", path="/", name="a")
        assert service.remove_cookie(str(space), dto) is True
        assert sorted(service.shared.snapshot().space.cookies) == ["other.test"]

        service.clear_cookies(str(space))
        assert service.get_space_cookies(str(space)) == {}
        assert service.shared.snapshot().space.cookies == {}

    def test_save_space_settings(self, service, space):
        service.save_space_settings(str(space), SpaceSettings(theme=Theme.LIGHT))
        assert service.shared.snapshot().space.settings.theme == Theme.LIGHT
        assert service.parse_space(space).settings.theme == Theme.LIGHT

    def test_set_default_theme(self, service, datadir):
        service.set_default_theme(Theme.DARK)
        assert service.shared.snapshot().user_settings.default_theme == Theme.DARK
        assert SpaceService(datadir).state_store.user_settings.default_theme == Theme.DARK


class TestErrorsSurface:
    def test_corrupt_space_config(self, service, space):
        (space / "zaku.toml").write_text("[meta", encoding="utf-8")
        with pytest.raises(InvalidFormatError):
            service.parse_space(space)

    def test_corrupt_buffer_still_opens(self, service, space, datadir):
        service.create_request(CreateRequestDto(parent_relpath="", relpath="Ping"))
        path = sbf_store_abspath(datadir, space)
        path.write_text("{not json", encoding="utf-8")

        state = initialize(SpaceService(datadir))

        assert state.space is not None
        assert state.space.root_collection.find_request("ping.toml") is not None
        assert path.read_text(encoding="utf-8") == "{not json"
