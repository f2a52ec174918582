"""Engine status values and their delivery.

The protocol layer reports the engine's status with every response.
It pushes those values into a :class:`StatusChannel`; a delivery thread
hands them to the single subscriber (normally a game session), which
keeps the latest one in a :class:`StatusHolder`.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
from typing import Any, Optional, Protocol

from src.game_controller.base import StateError

logger = logging.getLogger(__name__)


class GameStatus(enum.Enum):
    """Engine status as reported by the control protocol."""

    LAUNCHED = "launched"
    INIT_GAME = "init_game"
    IN_GAME = "in_game"
    IN_REPLAY = "in_replay"
    ENDED = "ended"
    QUIT = "quit"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> "GameStatus":
        """Accept a member, its name or value, or an object with ``.status``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if key in (member.value, member.name.lower()):
                    return member
            return cls.UNKNOWN
        status = getattr(value, "status", None)
        if status is not None:
            return cls.coerce(status)
        return cls.UNKNOWN


class StatusHolder:
    """Lock-guarded slot for the last observed status."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[GameStatus] = None

    def get(self) -> Optional[GameStatus]:
        with self._lock:
            return self._value

    def set(self, value: Optional[GameStatus]) -> None:
        with self._lock:
            self._value = value


class StatusSubscriber(Protocol):
    """Receiver side of a :class:`StatusChannel`."""

    def on_status(self, status: Any) -> None: ...

    def on_complete(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


_NEXT = "next"
_COMPLETE = "complete"
_ERROR = "error"
_CLOSE = "close"


class StatusChannel:
    """Bounded single-subscriber channel for status updates.

    Producers call :meth:`publish`, :meth:`complete` or :meth:`fail`
    from any thread.  Values are buffered (up to ``maxsize``) and handed
    to the subscriber, in order, on a dedicated daemon thread.  Values
    published before :meth:`subscribe` are delivered once a subscriber
    attaches.

    Completion is forwarded to the subscriber but does not end delivery;
    values published afterwards are still handed over.  Only :meth:`close`
    stops the delivery thread.  Errors raised by the subscriber are logged
    and do not stop delivery.

    Parameters
    ----------
    maxsize : int
        Buffer capacity.  :meth:`publish` blocks while the buffer is full.
    name : str
        Used for the delivery thread name.
    """

    def __init__(self, maxsize: int = 64, name: str = "status") -> None:
        self.name = name
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._subscriber: Optional[StatusSubscriber] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    # -- Producer side -------------------------------------------------

    def publish(self, status: Any, timeout: Optional[float] = None) -> None:
        """Queue a status value.

        Raises
        ------
        queue.Full
            If ``timeout`` elapses while the buffer is full.
        """
        self._queue.put((_NEXT, status), timeout=timeout)

    def complete(self) -> None:
        """Signal that no more values will follow."""
        self._queue.put((_COMPLETE, None))

    def fail(self, error: BaseException) -> None:
        """Report a stream error to the subscriber."""
        self._queue.put((_ERROR, error))

    # -- Consumer side -------------------------------------------------

    def subscribe(self, subscriber: StatusSubscriber) -> None:
        """Attach the one subscriber and start delivering.

        Raises
        ------
        StateError
            If a subscriber is already attached.
        """
        with self._lock:
            if self._subscriber is not None:
                raise StateError(f"Status channel {self.name!r} already has a subscriber")
            self._subscriber = subscriber
            self._thread = threading.Thread(
                target=self._deliver,
                args=(subscriber,),
                name=f"{self.name}-delivery",
                daemon=True,
            )
            self._thread.start()

    def join(self) -> None:
        """Block until every queued item has been delivered."""
        self._queue.join()

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the delivery thread after pending items are delivered."""
        with self._lock:
            thread = self._thread
        if thread is None or not thread.is_alive():
            return
        self._queue.put((_CLOSE, None))
        thread.join(timeout)

    # -- Internal ------------------------------------------------------

    def _deliver(self, subscriber: StatusSubscriber) -> None:
        while True:
            kind, payload = self._queue.get()
            try:
                if kind == _CLOSE:
                    return
                if kind == _NEXT:
                    subscriber.on_status(payload)
                elif kind == _ERROR:
                    subscriber.on_error(payload)
                elif kind == _COMPLETE:
                    subscriber.on_complete()
            except Exception:
                logger.exception("[%s] Subscriber raised while handling %s", self.name, kind)
            finally:
                self._queue.task_done()
