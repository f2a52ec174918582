"""Game sessions: one supervised engine process and its last known status.

Typical usage::

    from src.game_controller import starcraft2_game

    session = starcraft2_game().with_window_size(800, 600).launch()
    session.until_ready()
    # ... hand session.config.endpoint to the protocol client ...
    session.relaunch_if_needed(75689, "B89B5D6FA7CBF6452E721311BFBC6CB2").until_ready()
    session.stop_and_wait()
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any, Optional

from src.game_controller.allocator import InstanceAllocator, InstanceSlot, default_allocator
from src.game_controller.base import GameController, StateError
from src.game_controller.config import LaunchConfiguration, default_configuration, format_build
from src.game_controller.connection import ConnectionSupervisor, probe
from src.game_controller.launcher import ProcessHandle, ProcessLauncher
from src.game_controller.status import GameStatus, StatusChannel, StatusHolder
from src.game_controller.versions import VersionResolver

logger = logging.getLogger(__name__)


class GameSession(GameController):
    """A launched engine instance.

    The session owns the engine process, reconnects the control port on
    request, records the status values pushed to it (see
    :meth:`on_status`), and relaunches the engine when a different
    build is required.  Its identity survives relaunches; only the
    configuration and process handle are replaced.

    Attributes
    ----------
    stop_timeout_s : float
        Seconds :meth:`stop_and_wait` allows the engine to exit after a
        termination request before killing it.
    interrupted : bool
        Whether the last :meth:`stop_and_wait` was interrupted.

    Parameters
    ----------
    config : LaunchConfiguration
        Fully resolved configuration.
    launcher : ProcessLauncher, optional
        Spawns the engine.  A default launcher is used if omitted.
    supervisor : ConnectionSupervisor, optional
        Performs the readiness handshake.  Defaults to one using the
        config's ``net_retry_delay_s``.
    """

    stop_timeout_s = 10.0

    def __init__(
        self,
        config: LaunchConfiguration,
        launcher: Optional[ProcessLauncher] = None,
        supervisor: Optional[ConnectionSupervisor] = None,
    ) -> None:
        self._config = config
        self._launcher = launcher or ProcessLauncher()
        self._supervisor = supervisor or ConnectionSupervisor(config.net_retry_delay_s)
        self._process: Optional[ProcessHandle] = None
        self._status = StatusHolder()
        self.interrupted = False

    # -- Properties ----------------------------------------------------

    @property
    def name(self) -> str:
        return f"sc2:{self._config.port}"

    @property
    def config(self) -> LaunchConfiguration:
        return self._config

    @property
    def process(self) -> Optional[ProcessHandle]:
        return self._process

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    @property
    def retry_count(self) -> int:
        return self._supervisor.retry_count

    @property
    def last_status(self) -> Optional[GameStatus]:
        return self._status.get()

    # -- Lifecycle -----------------------------------------------------

    def launch(self) -> "GameSession":
        logger.info(
            "[%s] Launching %s with data version %s",
            self.name,
            self._config.base_build,
            self._config.data_version or "unset",
        )
        self._process = self._launcher.launch(self._config)
        return self

    def until_ready(self) -> "GameSession":
        cfg = self._config
        logger.info(
            "[%s] Waiting for %s:%d (%d retries, %d ms timeout)",
            self.name,
            *cfg.endpoint,
            cfg.net_retry_count,
            cfg.net_timeout_ms,
        )
        self._supervisor.await_ready(
            cfg.endpoint,
            self._process,
            cfg.net_retry_count,
            cfg.net_timeout_ms,
        )
        return self

    def is_ready(self) -> bool:
        if not self.running:
            return False
        return probe(self._config.endpoint, self._config.net_timeout_ms / 1000.0)

    def stop(self) -> None:
        if self._process is None:
            return
        logger.info("[%s] Stopping engine (PID %d)", self.name, self._process.pid)
        self._process.terminate()

    def stop_and_wait(self) -> None:
        """Stop the engine and block until it exits.

        An engine still alive after :attr:`stop_timeout_s` is killed.
        A ``KeyboardInterrupt`` while waiting is not propagated; it is
        recorded in :attr:`interrupted` and the call returns.  Check
        :attr:`running` afterwards to learn whether the engine exited.
        """
        self.interrupted = False
        if self._process is None:
            return
        self.stop()
        try:
            try:
                code = self._process.wait(timeout=self.stop_timeout_s)
            except subprocess.TimeoutExpired:
                logger.warning(
                    "[%s] Engine did not exit within %.0fs, killing (PID %d)",
                    self.name,
                    self.stop_timeout_s,
                    self._process.pid,
                )
                self._process.kill()
                code = self._process.wait()
        except KeyboardInterrupt:
            logger.debug("[%s] Interrupted while waiting for engine exit", self.name, exc_info=True)
            self.interrupted = True
            return
        logger.info("[%s] Engine exited with code %s", self.name, code)

    def restart(self) -> "GameSession":
        self.stop_and_wait()
        return self.launch()

    def relaunch_if_needed(self, base_build: int | str, data_version: Optional[str]) -> "GameSession":
        """Make sure the engine runs ``base_build`` with ``data_version``.

        Returns ``self`` untouched when both already match.  Otherwise
        the engine is stopped, the build and data version are replaced
        (every other setting is kept) and the engine launched again.
        An unset data version on either side compares as ``""``.
        The caller still has to :meth:`until_ready` afterwards.
        """
        expected_build = format_build(base_build)
        current_build = self._config.base_build
        current_data_version = self._config.data_version or ""
        expected_data_version = data_version or ""

        if current_build == expected_build and current_data_version == expected_data_version:
            return self

        logger.warning(
            "[%s] Expected base build %s and data version %s, running %s and %s. "
            "Relaunching to expected version...",
            self.name,
            expected_build,
            expected_data_version or "unset",
            current_build,
            current_data_version or "unset",
        )
        self.stop_and_wait()
        self._config = self._config.with_version(expected_build, data_version or None)
        return self.launch()

    # -- Status ----------------------------------------------------------

    def subscribe(self, channel: StatusChannel) -> "GameSession":
        """Receive status updates from ``channel``."""
        channel.subscribe(self)
        return self

    def on_status(self, status: Any) -> None:
        self._status.set(GameStatus.coerce(status))

    def on_complete(self) -> None:
        # The session, not the stream, decides when the engine stops.
        pass

    def on_error(self, error: BaseException) -> None:
        logger.error("[%s] Status stream error", self.name, exc_info=error)

    def in_state(self, expected: GameStatus) -> bool:
        return self._status.get() == expected

    def is_in_state(self, expected: GameStatus) -> None:
        """Assert the last observed status.

        Raises
        ------
        StateError
            If the last status differs from ``expected``.
        """
        actual = self._status.get()
        if actual != expected:
            raise StateError(f"Game status: expected [{expected}] but was [{actual}].")


class GameSessionBuilder:
    """Fluent configuration of a :class:`GameSession`.

    Creating a builder consumes one instance slot, which fixes the
    default port and the tiled window position.  Every ``with_*``
    setter returns the builder itself; :meth:`launch` resolves the
    install and starts the engine.

    Parameters
    ----------
    defaults : LaunchConfiguration, optional
        Values not overridden by setters.  Loaded from
        ``configs/games/starcraft2.yaml`` when omitted.
    allocator : InstanceAllocator, optional
        Slot source.  Defaults to the process-wide allocator.
    resolver : VersionResolver, optional
        Finds the executable and build.
    launcher : ProcessLauncher, optional
        Passed on to the session.
    """

    def __init__(
        self,
        defaults: Optional[LaunchConfiguration] = None,
        allocator: Optional[InstanceAllocator] = None,
        resolver: Optional[VersionResolver] = None,
        launcher: Optional[ProcessLauncher] = None,
    ) -> None:
        self._defaults = defaults if defaults is not None else default_configuration()
        self._allocator = allocator if allocator is not None else default_allocator()
        self._resolver = resolver if resolver is not None else VersionResolver()
        self._launcher = launcher

        self.slot: InstanceSlot = self._allocator.next_slot()
        self._overrides: dict[str, Any] = {
            "port": self.slot.port,
            "window_x": self.slot.window_x,
            "window_y": self.slot.window_y,
        }

    def with_executable_path(self, path: str | Path) -> "GameSessionBuilder":
        self._overrides["executable_path"] = Path(path)
        return self

    def with_listen_ip(self, ip: str) -> "GameSessionBuilder":
        self._overrides["listen_ip"] = ip
        return self

    def with_port(self, port: int) -> "GameSessionBuilder":
        self._overrides["port"] = port
        return self

    def with_window_size(self, width: int, height: int) -> "GameSessionBuilder":
        self._overrides["window_width"] = width
        self._overrides["window_height"] = height
        return self

    def with_window_position(self, x: int, y: int) -> "GameSessionBuilder":
        self._overrides["window_x"] = x
        self._overrides["window_y"] = y
        return self

    def with_window_mode(self, mode: int) -> "GameSessionBuilder":
        self._overrides["window_mode"] = mode
        return self

    def with_data_version(self, data_version: str) -> "GameSessionBuilder":
        self._overrides["data_version"] = data_version
        return self

    def with_verbose(self, level: int) -> "GameSessionBuilder":
        self._overrides["verbose"] = level
        return self

    def with_temp_dir(self, path: str | Path) -> "GameSessionBuilder":
        self._overrides["temp_dir"] = str(path)
        return self

    def with_data_dir(self, path: str | Path) -> "GameSessionBuilder":
        self._overrides["data_dir"] = str(path)
        return self

    def game_configuration(self) -> LaunchConfiguration:
        """Resolve the configuration without launching anything."""
        return self._resolver.resolve(self._defaults.merged(**self._overrides))

    def launch(self) -> GameSession:
        """Resolve the configuration and start the engine."""
        return GameSession(self.game_configuration(), launcher=self._launcher).launch()


def starcraft2_game(**kwargs: Any) -> GameSessionBuilder:
    """Start configuring a new StarCraft II instance.

    Keyword arguments are passed to :class:`GameSessionBuilder`.
    """
    return GameSessionBuilder(**kwargs)
