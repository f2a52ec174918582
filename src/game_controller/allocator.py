"""Per-instance port and window placement.

Every engine instance created in the same process gets an *ordinal*
from an :class:`InstanceAllocator`.  The ordinal tiles windows in a 2x2
grid so side-by-side instances do not overlap; ports come from an
independent sequence so that explicitly chosen ports and tiling never
interfere.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from src.game_controller.config import LaunchConfiguration, default_configuration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstanceSlot:
    """Placement handed to one instance."""

    ordinal: int
    port: int
    window_x: int
    window_y: int


def tile_position(ordinal: int, base_x: int, base_y: int, width: int, height: int) -> tuple[int, int]:
    """Window position of ``ordinal`` in the 2x2 tiling grid."""
    column = ordinal % 2
    row = (ordinal // 2) % 2
    return base_x + width * column, base_y + height * row


class InstanceAllocator:
    """Thread-safe source of :class:`InstanceSlot` values.

    Parameters
    ----------
    base_port : int
        First port handed out.
    port_step : int
        Increment between consecutive ports.
    base_x, base_y : int
        Top-left corner of the tiling grid.
    width, height : int
        Tile size, normally the window size.
    """

    def __init__(
        self,
        base_port: int = 5000,
        port_step: int = 1,
        base_x: int = 0,
        base_y: int = 0,
        width: int = 1024,
        height: int = 768,
    ) -> None:
        self.base_port = base_port
        self.port_step = port_step
        self.base_x = base_x
        self.base_y = base_y
        self.width = width
        self.height = height

        self._lock = threading.Lock()
        self._ordinal = 0
        self._ports_issued = 0
        self._last_port: Optional[int] = None

    @classmethod
    def from_config(cls, config: LaunchConfiguration) -> "InstanceAllocator":
        """Build an allocator whose grid and ports follow ``config``."""
        return cls(
            base_port=config.port if config.port is not None else 5000,
            port_step=config.port_step,
            base_x=config.window_x or 0,
            base_y=config.window_y or 0,
            width=config.window_width or 1024,
            height=config.window_height or 768,
        )

    @property
    def last_port(self) -> Optional[int]:
        """Most recently handed-out port, ``None`` before the first slot."""
        with self._lock:
            return self._last_port

    def next_port(self) -> int:
        """Draw the next port without consuming a window ordinal."""
        with self._lock:
            return self._fetch_port()

    def next_slot(self) -> InstanceSlot:
        """Consume one ordinal and return its port and window position."""
        with self._lock:
            ordinal = self._ordinal
            self._ordinal += 1
            port = self._fetch_port()

        x, y = tile_position(ordinal, self.base_x, self.base_y, self.width, self.height)
        slot = InstanceSlot(ordinal=ordinal, port=port, window_x=x, window_y=y)
        logger.debug("Allocated %s", slot)
        return slot

    def reset(self) -> None:
        """Zero both sequences.  Only meant for test isolation."""
        with self._lock:
            self._ordinal = 0
            self._ports_issued = 0
            self._last_port = None

    def _fetch_port(self) -> int:
        port = self.base_port + self.port_step * self._ports_issued
        self._ports_issued += 1
        self._last_port = port
        return port


_default_allocator: Optional[InstanceAllocator] = None
_default_lock = threading.Lock()


def default_allocator() -> InstanceAllocator:
    """Process-wide allocator used by builders that are not given one."""
    global _default_allocator
    with _default_lock:
        if _default_allocator is None:
            _default_allocator = InstanceAllocator.from_config(default_configuration())
        return _default_allocator
