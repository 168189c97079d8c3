"""Pan/zoom transform between screen space and image pixel space.

``screen = content * scale + position``. Every pointer position used as a
shape vertex goes through ``to_content`` first, so stored coordinates are
always image pixels regardless of the current zoom.
"""

from typing import Sequence, Tuple

import numpy as np

from .config import EditorSettings

Point = Tuple[float, float]


class Viewport:
    """Stage transform: uniform ``scale`` and a translation ``position``."""

    def __init__(self, settings: EditorSettings = None, scale: float = 1.0, position: Sequence[float] = (0.0, 0.0)):
        self.settings = settings or EditorSettings()
        self.scale = float(scale)
        self._position = np.asarray(position, dtype=float)

    @property
    def position(self) -> Point:
        return float(self._position[0]), float(self._position[1])

    def to_content(self, screen_point: Sequence[float]) -> Point:
        """Screen pixel -> image pixel."""
        x, y = (np.asarray(screen_point, dtype=float) - self._position) / self.scale
        return float(x), float(y)

    def to_screen(self, content_point: Sequence[float]) -> Point:
        """Image pixel -> screen pixel."""
        x, y = np.asarray(content_point, dtype=float) * self.scale + self._position
        return float(x), float(y)

    def content_distance(self, screen_distance: float) -> float:
        """Length in image pixels of a length measured on screen."""
        return screen_distance / self.scale

    def zoom_at(self, pointer: Sequence[float], delta_y: float) -> float:
        """Zoom one step around ``pointer``, keeping the image point under it fixed.

        Positive ``delta_y`` (wheel down) zooms out, negative zooms in.

        Returns:
            float: New scale
        """
        if delta_y == 0:
            return self.scale

        step = self.settings.zoom_step
        new_scale = self.scale / step if delta_y > 0 else self.scale * step
        new_scale = float(np.clip(new_scale, self.settings.min_scale, self.settings.max_scale))

        pointer = np.asarray(pointer, dtype=float)
        anchor = (pointer - self._position) / self.scale
        self._position = pointer - anchor * new_scale
        self.scale = new_scale
        return self.scale

    def pan_by(self, dx: float, dy: float) -> None:
        self._position = self._position + np.array([dx, dy], dtype=float)

    def drag_to(self, x: float, y: float) -> None:
        """Set the stage position, as at the end of a stage drag."""
        self._position = np.array([x, y], dtype=float)

    def fit(self, image_size: Sequence[float], viewport_size: Sequence[float]) -> float:
        """Initial scale and position that center the image beside the sidebar.

        Args:
            image_size: (width, height) of the image in pixels
            viewport_size: (width, height) of the window in screen pixels

        Returns:
            float: New scale
        """
        image_w, image_h = image_size
        if image_w <= 0 or image_h <= 0:
            raise ValueError(f"Image size must be positive, got {image_size}")

        view_w = viewport_size[0] - self.settings.sidebar_width
        view_h = viewport_size[1]
        scale = min(view_w / image_w, view_h / image_h) * self.settings.fit_zoom_factor

        self.scale = float(scale)
        self._position = np.array(
            [(view_w - image_w * scale) / 2, (view_h - image_h * scale) / 2], dtype=float
        )
        return self.scale
