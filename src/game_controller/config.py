"""Launch configuration data structures.

A :class:`LaunchConfiguration` describes everything needed to spawn and
reach one engine instance: where the binary lives, which build and data
version to run, how the window is laid out, and how patiently to wait
for the control port.

Defaults can be loaded from YAML files via :func:`load_launch_defaults`.
String values in YAML configs support environment variable expansion
using ``$VAR`` or ``${VAR}`` syntax, as well as ``~`` for the user
home directory.

Once resolved, a configuration is never mutated.  Relaunching to a
different version produces a new instance via :meth:`LaunchConfiguration.with_version`.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Default search path for launch default YAML files.
_CONFIGS_DIR = Path(__file__).resolve().parent.parent.parent / "configs" / "games"

DEFAULT_CONFIG_NAME = "starcraft2"

VERSIONS_DIR = "Versions"
BUILD_PREFIX = "Base"
X64_MARKER = "_x64"

# Pattern matching $VAR or ${VAR} for environment variable expansion.
_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

# Fields that must hold a value once the executable has been resolved.
_RESOLVED_FIELDS = ("executable_path", "game_root", "executable_file", "base_build")

_PATH_FIELDS = ("executable_path", "game_root")


@dataclass(frozen=True)
class LaunchConfiguration:
    """Immutable description of one engine launch.

    Every optional field left as ``None`` suppresses the matching
    command line flag.

    Parameters
    ----------
    executable_path : Path, optional
        Full path to the engine executable.  Looked up from the locator
        file when not given.
    game_root : Path, optional
        Install root (the directory holding ``Versions/``).  Derived.
    executable_file : str, optional
        Executable path relative to ``Versions/<build>/``.  Derived.
    base_build : str, optional
        Versioned build directory name, e.g. ``"Base75689"``.  Derived.
    is_64bit : bool
        Whether the executable is the 64-bit variant.  Derived.
    listen_ip : str, optional
        Address the engine binds its control port to.
    port : int, optional
        Control port.  Normally stamped by the instance allocator.
    port_step : int
        Distance between ports of consecutively allocated instances.
    window_mode : int, optional
        ``-displayMode`` value (0 windowed, 1 fullscreen).
    window_width, window_height : int, optional
        Window size in pixels.  Also the tile size for window placement.
    window_x, window_y : int, optional
        Window position.  The base of the tiling grid.
    data_version : str, optional
        Data hash matching ``base_build``.
    verbose : int, optional
        Engine ``-verbose`` level.
    temp_dir, data_dir : str, optional
        Engine scratch and data directories.
    osmesa_path, egl_path : str, optional
        Software / EGL renderer libraries for headless Linux builds.
    net_timeout_ms : int
        Per-attempt TCP connect timeout.
    net_retry_count : int
        Connection retries after the first failed attempt.
    net_retry_delay_s : float
        Pause between connection attempts.
    """

    # Executable
    executable_path: Optional[Path] = None
    game_root: Optional[Path] = None
    executable_file: Optional[str] = None
    base_build: Optional[str] = None
    is_64bit: bool = False

    # Network
    listen_ip: Optional[str] = "127.0.0.1"
    port: Optional[int] = 5000
    port_step: int = 1

    # Window
    window_mode: Optional[int] = 0
    window_width: Optional[int] = 1024
    window_height: Optional[int] = 768
    window_x: Optional[int] = 0
    window_y: Optional[int] = 0

    # Engine command line
    data_version: Optional[str] = None
    verbose: Optional[int] = None
    temp_dir: Optional[str] = None
    data_dir: Optional[str] = None
    osmesa_path: Optional[str] = None
    egl_path: Optional[str] = None

    # Connection supervision
    net_timeout_ms: int = 2000
    net_retry_count: int = 10
    net_retry_delay_s: float = 1.0

    def __post_init__(self) -> None:
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None:
                expanded = Path(os.path.expanduser(_expand_vars(str(value))))
                object.__setattr__(self, name, expanded)

    # -- Derived values ------------------------------------------------

    @property
    def endpoint(self) -> tuple[str, int]:
        """``(host, port)`` of the control socket."""
        return (self.listen_ip or "127.0.0.1", int(self.port or 0))

    @property
    def build_executable(self) -> Path:
        """Executable inside the selected build directory."""
        if self.game_root is None or self.base_build is None or not self.executable_file:
            raise ValueError("Configuration has not been resolved yet")
        return self.game_root / VERSIONS_DIR / self.base_build / self.executable_file

    @property
    def build_number(self) -> Optional[int]:
        """Numeric part of :attr:`base_build`, or ``None``."""
        if self.base_build is None:
            return None
        return parse_build_number(self.base_build)

    # -- Copies ----------------------------------------------------------

    def merged(self, **overrides) -> "LaunchConfiguration":
        """Return a copy with ``overrides`` applied on top of this config."""
        return dataclasses.replace(self, **overrides)

    def with_version(self, base_build: str, data_version: Optional[str]) -> "LaunchConfiguration":
        """Return a copy running a different build; all other fields kept."""
        return dataclasses.replace(self, base_build=base_build, data_version=data_version)

    # -- Validation ------------------------------------------------------

    def validate(self) -> None:
        """Check a resolved configuration.

        Raises
        ------
        ValueError
            If a derived field is missing or a value is out of range.
        """
        missing = [name for name in _RESOLVED_FIELDS if getattr(self, name) in (None, "")]
        if missing:
            raise ValueError(f"Unresolved configuration fields: {missing}")

        if self.port is not None and not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.port_step < 1:
            raise ValueError(f"port_step must be positive, got {self.port_step}")
        for name in ("window_width", "window_height"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.net_timeout_ms <= 0:
            raise ValueError(f"net_timeout_ms must be positive, got {self.net_timeout_ms}")
        if self.net_retry_count < 0:
            raise ValueError(f"net_retry_count must not be negative, got {self.net_retry_count}")
        if self.net_retry_delay_s < 0:
            raise ValueError(
                f"net_retry_delay_s must not be negative, got {self.net_retry_delay_s}"
            )


def format_build(build: int | str) -> str:
    """Format a build number the way build directories are named.

    >>> format_build(75689)
    'Base75689'
    """
    text = str(build)
    if text.startswith(BUILD_PREFIX):
        return text
    return f"{BUILD_PREFIX}{text}"


def parse_build_number(base_build: str) -> int:
    """Strip the ``Base`` prefix and parse the remainder.

    Raises
    ------
    ValueError
        If the remainder is not an integer.
    """
    return int(base_build[len(BUILD_PREFIX):] if base_build.startswith(BUILD_PREFIX) else base_build)


def _expand_vars(value: str) -> str:
    """Expand ``$VAR`` and ``${VAR}`` references in a string.

    Undefined variables are left as-is (no error).  ``${VAR:-default}``
    falls back to ``default``.
    """

    def _replace(match: re.Match) -> str:
        braced = match.group(1)
        bare = match.group(2)
        original: str = match.group(0) or ""

        if braced is not None:
            if ":-" in braced:
                var_name, default = braced.split(":-", 1)
                return os.environ.get(var_name, default)
            return os.environ.get(braced, original)

        return os.environ.get(bare or "", original)

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_vars_recursive(data: dict) -> dict:
    """Return a copy of ``data`` with env vars expanded in string values."""
    return {
        key: _expand_vars(value) if isinstance(value, str) else value
        for key, value in data.items()
    }


def load_launch_defaults(
    name: str = DEFAULT_CONFIG_NAME,
    configs_dir: str | Path | None = None,
) -> LaunchConfiguration:
    """Load a :class:`LaunchConfiguration` from a YAML file.

    Searches ``configs_dir`` (default ``configs/games/``) for a file
    named ``<name>.yaml``.  String values in the YAML undergo
    environment variable expansion (``$VAR`` / ``${VAR}``).

    Parameters
    ----------
    name : str
        Config identifier matching the YAML filename (without extension).
    configs_dir : str or Path, optional
        Override the default config directory.

    Returns
    -------
    LaunchConfiguration

    Raises
    ------
    FileNotFoundError
        If no YAML file is found for ``name``.
    ValueError
        If the YAML contains unknown fields or is not a mapping.
    """
    search_dir = Path(configs_dir) if configs_dir else _CONFIGS_DIR
    config_path = search_dir / f"{name}.yaml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"No launch config found at {config_path}. "
            f"Available configs: {[p.stem for p in search_dir.glob('*.yaml')]}"
        )

    logger.info("Loading launch defaults from %s", config_path)
    with open(config_path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ValueError(
            f"Expected a YAML mapping in {config_path}, got {type(raw).__name__}"
        )

    raw = _expand_vars_recursive(raw)

    valid_fields = {f.name for f in dataclasses.fields(LaunchConfiguration)}
    unknown = set(raw) - valid_fields
    if unknown:
        raise ValueError(
            f"Unknown fields in {config_path}: {sorted(unknown)}. "
            f"Valid fields: {sorted(valid_fields)}"
        )

    return LaunchConfiguration(**raw)


def default_configuration() -> LaunchConfiguration:
    """Shipped defaults if ``configs/games/starcraft2.yaml`` exists, else built-ins."""
    try:
        return load_launch_defaults(DEFAULT_CONFIG_NAME)
    except FileNotFoundError:
        logger.debug("No shipped launch defaults, using built-in values")
        return LaunchConfiguration()
