"""Locate the installed game and pick the build to run.

The game writes a small *locator file* (``ExecuteInfo.txt``) into a
platform-specific directory under the user's home.  Its first line is a
``key=value`` property naming the executable of the active install::

    executable = C:\\Program Files (x86)\\StarCraft II\\Versions\\Base75689\\SC2_x64.exe

From that executable the :class:`VersionResolver` derives the install
root, enumerates ``<root>/Versions/Base*`` and selects the newest build
that actually contains the executable, then looks up the matching data
version in :data:`KNOWN_VERSIONS`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, NamedTuple, Optional

import yaml

from src.game_controller.base import ResolutionError
from src.game_controller.config import (
    VERSIONS_DIR,
    X64_MARKER,
    LaunchConfiguration,
    parse_build_number,
)
from src.game_controller.platforms import Platform, detect_platform

logger = logging.getLogger(__name__)

LOCATOR_FILE = "ExecuteInfo.txt"

_LOCATOR_DIRS: dict[Platform, Path] = {
    Platform.WINDOWS: Path("Documents", "StarCraft II"),
    Platform.LINUX: Path("StarCraft II"),
    Platform.MACOS: Path("Library", "Application Support", "Blizzard", "StarCraft II"),
}

# Parents between the executable and the install root.  The macOS
# executable sits inside ``SC2.app/Contents/MacOS``.
_ROOT_DEPTH = 3
_BUNDLE_ROOT_DEPTH = 6


class GameVersion(NamedTuple):
    """A released game version and the data hash it expects."""

    label: str
    build: int
    data_hash: str


KNOWN_VERSIONS: tuple[GameVersion, ...] = (
    GameVersion("3.16.1", 55958, "5BD7C31B44525DAB46E64C4602A81DC2"),
    GameVersion("3.17.0", 56787, "DFD1F6607F2CF19CB4E1C996B2563D9B"),
    GameVersion("3.18.0", 57507, "1659EF34997DA3470FF84A14431E3A86"),
    GameVersion("3.19.0", 58400, "2B06AEE58017A7DF2A3D452D733F1019"),
    GameVersion("4.0.0", 59587, "9B4FD995C61664831192B7DA46F8C1A1"),
    GameVersion("4.1.2", 60321, "33D9FE28909573253B7FC352CE7AEA40"),
    GameVersion("4.10.0", 75689, "B89B5D6FA7CBF6452E721311BFBC6CB2"),
    GameVersion("4.10.1", 75800, "DDFFF9EC4A171459A4F371C6CC189554"),
)


def data_version_for(
    build: int,
    versions: Iterable[GameVersion] = KNOWN_VERSIONS,
) -> Optional[str]:
    """Return the data hash for ``build``, or ``None`` if it is not known.

    When a build appears several times (patches that only changed data)
    the last entry wins.
    """
    found: Optional[str] = None
    for version in versions:
        if version.build == build:
            found = version.data_hash
    return found


def load_version_table(path: str | Path) -> tuple[GameVersion, ...]:
    """Load extra versions from a YAML list of ``{label, build, data_hash}``.

    Raises
    ------
    ValueError
        If the document is not a list of complete mappings.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or []

    if not isinstance(raw, list):
        raise ValueError(f"Expected a YAML list in {path}, got {type(raw).__name__}")

    table = []
    for entry in raw:
        try:
            table.append(GameVersion(str(entry["label"]), int(entry["build"]), str(entry["data_hash"])))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid version entry in {path}: {entry!r}") from exc
    return tuple(table)


def parse_locator(path: Path) -> Path:
    """Read the executable path from a locator file.

    Only the first line is considered.  It must split on ``=`` into
    exactly two tokens and the value must not be blank.

    Raises
    ------
    ResolutionError
        If the file is absent or its first line is malformed.
    """
    if not path.is_file():
        raise ResolutionError(LOCATOR_FILE, str(path))

    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        first_line = fh.readline().rstrip("\r\n")

    parts = first_line.split("=")
    if len(parts) != 2:
        raise ResolutionError("executable path", f"malformed first line in {path}: {first_line!r}")

    value = parts[1].strip()
    if not value:
        raise ResolutionError("executable path", f"empty value in {path}")

    return Path(value)


def newest_base_build(versions_dir: Path, executable_file: str) -> str:
    """Name of the greatest ``Versions/`` subdirectory holding ``executable_file``.

    Raises
    ------
    ResolutionError
        If ``versions_dir`` does not exist or no build qualifies.
    """
    if not versions_dir.is_dir():
        raise ResolutionError("version directory", str(versions_dir))

    candidates = [
        entry.name
        for entry in versions_dir.iterdir()
        if entry.is_dir() and (entry / executable_file).exists()
    ]
    if not candidates:
        raise ResolutionError("base build", f"no build in {versions_dir} contains {executable_file}")

    return max(candidates)


class VersionResolver:
    """Fill in the executable, install root, build and data version of a config.

    Parameters
    ----------
    platform : Platform, optional
        Host platform.  Detected once when omitted.
    home : Path, optional
        User home directory holding the locator file.  Defaults to
        ``Path.home()``.
    versions : iterable of GameVersion
        Table used to map a build number to its data hash.
    """

    def __init__(
        self,
        platform: Optional[Platform] = None,
        home: Optional[Path] = None,
        versions: Iterable[GameVersion] = KNOWN_VERSIONS,
    ) -> None:
        self.platform = platform if platform is not None else detect_platform()
        self.home = Path(home) if home is not None else Path.home()
        self.versions = tuple(versions)

    def locator_path(self) -> Optional[Path]:
        """Where the locator file lives on this platform, or ``None``."""
        sub = _LOCATOR_DIRS.get(self.platform)
        if sub is None:
            return None
        return self.home / sub / LOCATOR_FILE

    def find_executable(self) -> Path:
        """Resolve the active executable from the locator file.

        Raises
        ------
        ResolutionError
            If the locator is missing or malformed, or names a file that
            does not exist.
        """
        locator = self.locator_path()
        if locator is None:
            raise ResolutionError(LOCATOR_FILE, f"unsupported platform {self.platform.value}")

        executable = parse_locator(locator)
        if not executable.exists():
            raise ResolutionError("executable path", str(executable))

        logger.debug("Locator %s names executable %s", locator, executable)
        return executable

    def game_root(self, executable: Path) -> Path:
        """Ascend from the executable to the install root."""
        depth = _BUNDLE_ROOT_DEPTH if self.platform.is_bundle else _ROOT_DEPTH
        parents = executable.parents
        if len(parents) < depth:
            raise ResolutionError("game root", f"{executable} is nested less than {depth} levels deep")
        return parents[depth - 1]

    def resolve(self, config: LaunchConfiguration) -> LaunchConfiguration:
        """Return ``config`` with every executable-derived field filled in.

        Raises
        ------
        ResolutionError
            If no executable or no qualifying build can be found.
        ValueError
            If the resulting configuration fails validation.
        """
        executable = config.executable_path or self.find_executable()
        root = self.game_root(executable)
        executable_file = str(Path(*executable.parts[len(root.parts) + 2:]))
        base_build = newest_base_build(root / VERSIONS_DIR, executable_file)

        data_version = config.data_version
        if data_version is None:
            try:
                data_version = data_version_for(parse_build_number(base_build), self.versions)
            except ValueError:
                logger.warning("Build directory %s has no numeric suffix", base_build)
            if data_version is None:
                logger.info("No known data version for %s, leaving it unset", base_build)

        resolved = config.merged(
            executable_path=executable,
            game_root=root,
            executable_file=executable_file,
            base_build=base_build,
            is_64bit=X64_MARKER in executable_file,
            data_version=data_version,
        )
        resolved.validate()

        logger.info(
            "Resolved %s (data version %s) under %s",
            base_build,
            data_version or "unset",
            root,
        )
        return resolved
