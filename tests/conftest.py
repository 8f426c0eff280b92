"""Shared test fixtures for the zaku package."""

from pathlib import Path

import pytest

from zaku.models.request import HttpReq, ReqCfg, ReqMeta
from zaku.models.space import CreateSpaceDto
from zaku.space import SpaceService
from zaku.store.state import StateStore
from zaku.store.utils import state_store_abspath


def make_space_dir(root: Path, fsname: str = "api", name: str = "API") -> Path:
    """Lay out a minimal space directory by hand, bypassing the service."""
    space = root / fsname
    (space / ".zaku" / "collections").mkdir(parents=True)
    (space / "zaku.toml").write_text(f'[meta]\nname = "{name}"\n', encoding="utf-8")
    return space


@pytest.fixture
def make_space():
    return make_space_dir


@pytest.fixture
def datadir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def workdir(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def state_store(datadir) -> StateStore:
    return StateStore.get(state_store_abspath(datadir))


@pytest.fixture
def service(datadir) -> SpaceService:
    return SpaceService(datadir)


@pytest.fixture
def space(service, workdir) -> Path:
    """An active space named "My Space" created through the service."""
    ref = service.create_space(CreateSpaceDto(name="My Space", location=str(workdir)))
    return Path(ref.path)


@pytest.fixture
def sample_request() -> HttpReq:
    return HttpReq(
        meta=ReqMeta(fsname="get-user", display_name="Get user"),
        config=ReqCfg(
            method="GET",
            url="https://example.com/users/1",
            headers=[(True, "Accept", "application/json"), (False, "X-Debug", "1")],
            parameters=[(True, "verbose", "true")],
        ),
    )
