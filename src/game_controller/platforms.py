"""Host platform detection.

The platform is resolved once (:func:`detect_platform`) and passed
explicitly to everything that depends on it, so path layout decisions
never re-inspect ``sys.platform``.
"""

from __future__ import annotations

import enum
import sys
from typing import Optional


class Platform(enum.Enum):
    """Operating systems the game ships for."""

    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"
    UNKNOWN = "unknown"

    @property
    def is_bundle(self) -> bool:
        """``True`` where the executable lives inside an application bundle."""
        return self is Platform.MACOS


def detect_platform(platform_name: Optional[str] = None) -> Platform:
    """Map a ``sys.platform`` style string to a :class:`Platform`.

    Parameters
    ----------
    platform_name : str, optional
        Value to classify.  Defaults to ``sys.platform``.

    Returns
    -------
    Platform
        ``Platform.UNKNOWN`` if the name is not recognised.
    """
    name = (platform_name if platform_name is not None else sys.platform).lower()
    if name.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    if name.startswith("darwin"):
        return Platform.MACOS
    if name.startswith(("linux", "aix", "freebsd", "openbsd")):
        return Platform.LINUX
    return Platform.UNKNOWN
