"""Spawn the engine process.

:class:`ProcessLauncher` turns a resolved :class:`LaunchConfiguration`
into a command line and starts it from the build's support directory.
The resulting :class:`ProcessHandle` is the only owner of the OS
process.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from src.game_controller.base import LaunchError
from src.game_controller.config import LaunchConfiguration

logger = logging.getLogger(__name__)

SUPPORT_DIR = "Support"
SUPPORT_DIR_64 = "Support64"

# Command line flag -> configuration field.  A field holding ``None``
# drops its flag entirely.
ARGUMENT_FLAGS: tuple[tuple[str, str], ...] = (
    ("-listen", "listen_ip"),
    ("-port", "port"),
    ("-displayMode", "window_mode"),
    ("-dataVersion", "data_version"),
    ("-windowwidth", "window_width"),
    ("-windowheight", "window_height"),
    ("-windowx", "window_x"),
    ("-windowy", "window_y"),
    ("-verbose", "verbose"),
    ("-tempDir", "temp_dir"),
    ("-dataDir", "data_dir"),
    ("-osmesapath", "osmesa_path"),
    ("-eglpath", "egl_path"),
)


class ProcessHandle:
    """Exclusive owner of one running engine process."""

    def __init__(self, process: subprocess.Popen) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def is_alive(self) -> bool:
        """``True`` while the process has not exited."""
        return self._process.poll() is None

    def terminate(self) -> None:
        """Ask the process to exit.  No-op if it already has."""
        if self.is_alive():
            self._process.terminate()

    def kill(self) -> None:
        if self.is_alive():
            self._process.kill()

    def wait(self, timeout: Optional[float] = None) -> int:
        """Block until the process exits and return its exit code.

        Raises
        ------
        subprocess.TimeoutExpired
            If ``timeout`` elapses first.
        """
        return self._process.wait(timeout=timeout)

    def __repr__(self) -> str:
        state = "alive" if self.is_alive() else f"exited {self.returncode}"
        return f"<ProcessHandle(pid={self.pid}, {state})>"


def build_args(config: LaunchConfiguration) -> list[str]:
    """Full command line for ``config``: executable, then set flags only."""
    args = [str(config.build_executable)]
    for flag, field_name in ARGUMENT_FLAGS:
        value = getattr(config, field_name)
        if value is None:
            continue
        args.extend([flag, str(value)])
    return args


def support_dir(config: LaunchConfiguration) -> Path:
    """Working directory the engine expects to be started from."""
    if config.game_root is None:
        raise ValueError("Configuration has not been resolved yet")
    return config.game_root / (SUPPORT_DIR_64 if config.is_64bit else SUPPORT_DIR)


class ProcessLauncher:
    """Start engine processes from resolved configurations."""

    def launch(self, config: LaunchConfiguration) -> ProcessHandle:
        """Spawn the engine described by ``config``.

        Raises
        ------
        LaunchError
            If the process could not be started (missing binary,
            permission denied, missing working directory, ...).
        """
        args = build_args(config)
        cwd = support_dir(config)
        logger.info("Launching %s (cwd %s)", " ".join(args), cwd)

        kwargs: dict = dict(
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        # A separate process group keeps Ctrl+C in the controlling
        # terminal from reaching the engine directly.
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(args, **kwargs)
        except OSError as exc:
            logger.error("Could not start %s: %s", args[0], exc)
            raise LaunchError(f"Could not start {args[0]}: {exc}") from exc

        logger.info("Engine process PID: %d", process.pid)
        return ProcessHandle(process)
