"""Shared pytest fixtures for the game controller test suite.

Provides a fake StarCraft II install tree (``Versions/Base*`` build
directories, support directories and a locator file) so that version
resolution and launching can be exercised without the real game.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from src.game_controller.allocator import default_allocator
from src.game_controller.platforms import Platform
from src.game_controller.versions import GameVersion, VersionResolver

logger = logging.getLogger(__name__)

EXE_NAME = "SC2_x64"

TEST_VERSIONS = (
    GameVersion("test-1", 55000, "AAAA0000"),
    GameVersion("test-2", 60000, "BBBB1111"),
)


def make_install(root: Path, builds: tuple[str, ...] = ("Base55000", "Base60000"), exe_name: str = EXE_NAME) -> Path:
    """Create ``root/Versions/<build>/<exe_name>`` for every build.

    Returns the executable of the last build.
    """
    executable = root
    for build in builds:
        build_dir = root / "Versions" / build
        build_dir.mkdir(parents=True, exist_ok=True)
        executable = build_dir / exe_name
        executable.write_text("", encoding="utf-8")
    (root / "Support").mkdir(exist_ok=True)
    (root / "Support64").mkdir(exist_ok=True)
    return executable


def write_locator(home: Path, content: str) -> Path:
    """Write a Linux-layout ``ExecuteInfo.txt`` under ``home``."""
    locator = home / "StarCraft II" / "ExecuteInfo.txt"
    locator.parent.mkdir(parents=True, exist_ok=True)
    locator.write_text(content, encoding="utf-8")
    return locator


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_default_allocator():
    """Every test starts from ordinal 0 on the process-wide allocator."""
    default_allocator().reset()
    yield
    default_allocator().reset()


@pytest.fixture
def game_root(tmp_path: Path) -> Path:
    """Install root holding ``Base55000`` and ``Base60000``."""
    root = tmp_path / "StarCraftII"
    make_install(root)
    return root


@pytest.fixture
def executable(game_root: Path) -> Path:
    """Executable inside the newest fake build."""
    return game_root / "Versions" / "Base60000" / EXE_NAME


@pytest.fixture
def home(tmp_path: Path, executable: Path) -> Path:
    """User home whose locator file points at :func:`executable`."""
    home_dir = tmp_path / "home"
    write_locator(home_dir, f"executable = {executable}\n")
    return home_dir


@pytest.fixture
def resolver(home: Path) -> VersionResolver:
    """Linux resolver reading the fake home and the test version table."""
    return VersionResolver(platform=Platform.LINUX, home=home, versions=TEST_VERSIONS)
