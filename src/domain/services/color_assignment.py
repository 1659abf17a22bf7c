"""Procedure Color Assignment.

Maps procedure / condition display names to palette colors so that the same
name keeps the same color across repeated look-ups. The mapping is an
explicit, caller-owned object: create one per patient view (or per request)
and pass it into extraction calls, or call ``reset()`` when the active
patient changes. Batch jobs processing several patients must give each
patient its own instance to avoid cross-patient color bleed.

Architecture:
    - Pure domain state object with no infrastructure dependencies
    - Thread-safe: a lock guards the map and the palette cursor
"""

import logging
from threading import Lock
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PALETTE: tuple[str, ...] = (
    "#00bcd4",  # Cyan
    "#4ade80",  # Green
    "#06b6d4",  # Teal
    "#8b5cf6",  # Purple
    "#f472b6",  # Pink
    "#ef4444",  # Red
    "#f97316",  # Orange
    "#eab308",  # Yellow
    "#3b82f6",  # Blue
    "#ec4899",  # Fuchsia
    "#10b981",  # Emerald
    "#f59e0b",  # Amber
)


class ColorAssignment:
    """Stable name-to-color assignment with a monotonically advancing palette cursor.

    Example Usage:
        ```python
        colors = ColorAssignment()
        colors.color_for("Avastin")   # "#00bcd4"
        colors.color_for("PRP")       # "#4ade80"
        colors.color_for("Avastin")   # "#00bcd4" again
        colors.reset()
        colors.color_for("PRP")       # "#00bcd4"
        ```
    """

    def __init__(self, palette: Optional[Sequence[str]] = None):
        """Initialize ColorAssignment.

        Parameters:
            palette: Colors to cycle through (uses DEFAULT_PALETTE if None)

        Raises:
            ValueError: If the palette is empty
        """
        self.palette: tuple[str, ...] = tuple(palette) if palette is not None else DEFAULT_PALETTE
        if not self.palette:
            raise ValueError("ColorAssignment palette must contain at least one color")
        self._colors: dict[str, str] = {}
        self._index = 0
        self._lock = Lock()

    def color_for(self, name: str) -> str:
        """Return the color assigned to ``name``, assigning the next palette color if new."""
        with self._lock:
            color = self._colors.get(name)
            if color is None:
                color = self.palette[self._index % len(self.palette)]
                self._colors[name] = color
                self._index += 1
            return color

    def reset(self) -> None:
        """Forget every assignment and rewind the palette cursor."""
        with self._lock:
            self._colors.clear()
            self._index = 0
        logger.debug("Procedure color assignment reset")

    def __len__(self) -> int:
        with self._lock:
            return len(self._colors)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._colors

    def get_statistics(self) -> dict:
        """Get the current assignment state.

        Returns:
            dict: ``assigned`` (name -> color), ``next_index`` and ``palette_size``
        """
        with self._lock:
            return {
                "assigned": dict(self._colors),
                "next_index": self._index,
                "palette_size": len(self.palette),
            }
