"""Abstract lifecycle for controlled game processes, plus the error taxonomy.

A :class:`GameController` owns one running engine process and knows how
to spawn it, tell when it is reachable, and tear it down again.

Subclasses implement the concrete mechanics (locating the binary,
building the command line, probing the control port, etc.).
"""

from __future__ import annotations

import abc
import logging

logger = logging.getLogger(__name__)


class GameController(abc.ABC):
    """Base class for all game process controllers.

    The controller lifecycle is:

    1. :meth:`launch`: spawn the engine process
    2. :meth:`until_ready`: block until the control port accepts
    3. :meth:`is_ready`: check if the engine is reachable right now
    4. :meth:`stop`: request termination of the engine process

    Controllers double as context managers: entering launches (if not
    already running) and waits for readiness, leaving stops and waits
    for exit.
    """

    # -- Properties ----------------------------------------------------

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short identifier used as the log prefix."""

    @property
    @abc.abstractmethod
    def running(self) -> bool:
        """Whether the owned engine process is currently alive."""

    # -- Lifecycle -----------------------------------------------------

    @abc.abstractmethod
    def launch(self) -> "GameController":
        """Spawn the engine process and return ``self``.

        Raises
        ------
        LaunchError
            If the operating system refuses to start the process.
        """

    @abc.abstractmethod
    def until_ready(self) -> "GameController":
        """Block until the engine accepts connections on its control port.

        Raises
        ------
        StateError
            If the engine process is not alive.
        UnreachableError
            If the retry budget is exhausted.
        """

    @abc.abstractmethod
    def is_ready(self) -> bool:
        """Return ``True`` if the control port accepts a connection."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Request termination of the engine process.

        Must be safe to call even if nothing was ever launched.
        """

    @abc.abstractmethod
    def stop_and_wait(self) -> None:
        """Stop the engine process and block until it has exited."""

    # -- Context manager -----------------------------------------------

    def __enter__(self) -> "GameController":
        if not self.running:
            self.launch()
        self.until_ready()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:  # noqa: ANN001
        self.stop_and_wait()
        return False

    # -- Repr -----------------------------------------------------------

    def __repr__(self) -> str:
        status = "running" if self.running else "stopped"
        return f"<{type(self).__name__}({self.name!r}, {status})>"


class GameControllerError(Exception):
    """Base class for unrecoverable game controller errors."""


class ResolutionError(GameControllerError):
    """Raised when the install, executable, or base build cannot be found.

    The message names the missing item, e.g. ``"base build"``.
    """

    def __init__(self, what: str, detail: str = "") -> None:
        self.what = what
        message = f"Required {what} not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class LaunchError(GameControllerError):
    """Raised when the engine process could not be spawned."""


class UnreachableError(GameControllerError):
    """Raised when the control port never accepted within the retry budget."""


class StateError(GameControllerError):
    """Raised when the engine is not in the state the caller requires.

    Covers both a dead process where a live one is needed and a failed
    status assertion.
    """
