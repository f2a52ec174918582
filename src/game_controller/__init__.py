"""Game controller subsystem: launch, reach and version-sync game engines.

Resolves which installed build to run, places each instance on its own
port and window tile, spawns the engine, waits for its control port and
relaunches it when a different build is required.  Each running engine
is represented by a :class:`GameSession`, configured through the fluent
:class:`GameSessionBuilder`.

Typical usage::

    from src.game_controller import starcraft2_game

    session = starcraft2_game().launch()
    session.until_ready()   # block until the control port accepts
    # … speak the protocol to session.config.endpoint …
    session.stop_and_wait()
"""

from src.game_controller.allocator import InstanceAllocator, InstanceSlot, default_allocator
from src.game_controller.base import (
    GameController,
    GameControllerError,
    LaunchError,
    ResolutionError,
    StateError,
    UnreachableError,
)
from src.game_controller.config import LaunchConfiguration, load_launch_defaults
from src.game_controller.connection import ConnectionSupervisor
from src.game_controller.launcher import ProcessHandle, ProcessLauncher
from src.game_controller.platforms import Platform, detect_platform
from src.game_controller.session import GameSession, GameSessionBuilder, starcraft2_game
from src.game_controller.status import GameStatus, StatusChannel
from src.game_controller.versions import KNOWN_VERSIONS, GameVersion, VersionResolver, load_version_table

__all__ = [
    "ConnectionSupervisor",
    "GameController",
    "GameControllerError",
    "GameSession",
    "GameSessionBuilder",
    "GameStatus",
    "GameVersion",
    "InstanceAllocator",
    "InstanceSlot",
    "KNOWN_VERSIONS",
    "LaunchConfiguration",
    "LaunchError",
    "Platform",
    "ProcessHandle",
    "ProcessLauncher",
    "ResolutionError",
    "StateError",
    "StatusChannel",
    "UnreachableError",
    "VersionResolver",
    "default_allocator",
    "detect_platform",
    "load_launch_defaults",
    "load_version_table",
    "starcraft2_game",
]
