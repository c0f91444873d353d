"""
Track Direction Detection and ROI Selection
============================================
This module decides which way the track is being driven and which part of
the frame to search for cones.

Key features:
1. Direction Latch - infers clockwise / counter-clockwise once, on the first
   frame where both cone colors are visible, and never changes afterwards
2. ROI Selection - wide search window until the latch, narrow tracking
   window after it
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

from pipeline import DetectedObject, ObjectCenter


class DirectionNotLatchedError(RuntimeError):
    """Raised when steering is requested before the track direction is known."""


class TrackDirection(Enum):
    UNDETERMINED = "undetermined"
    CLOCKWISE = "clockwise"
    COUNTER_CLOCKWISE = "counter_clockwise"

    @property
    def determined(self) -> bool:
        return self is not TrackDirection.UNDETERMINED

    @property
    def flag(self) -> bool:
        """Boolean direction used by the steering formulas (True = clockwise)."""
        if not self.determined:
            raise DirectionNotLatchedError("track direction has not been detected yet")
        return self is TrackDirection.CLOCKWISE


@dataclass(frozen=True)
class SteeringWindow:
    """Crop rectangle in full-frame coordinates; width normalizes steering."""

    x: int
    y: int
    width: int
    height: int


class DirectionDetector:
    """
    One-shot latch for the track's traversal direction.

    While undetermined, every update() with at least one yellow and one blue
    detection decides the direction:
    - yellow cone left of the threshold, or blue cone right of it
      -> COUNTER_CLOCKWISE
    - otherwise -> CLOCKWISE

    Args:
        threshold: x coordinate splitting left from right (default: 320,
            the middle of a 640px frame)
        state: Initial state (default: UNDETERMINED)
    """

    def __init__(self, threshold=320, state=TrackDirection.UNDETERMINED):
        self.threshold = threshold
        self._state = state

    @property
    def state(self) -> TrackDirection:
        return self._state

    def update(self, yellow_centers: Sequence[ObjectCenter], blue_objects: Sequence[DetectedObject]):
        """
        Feed one frame of detections and return the (possibly new) direction.

        Args:
            yellow_centers: Centers of the yellow cones, extraction order
            blue_objects: Bounding boxes of the blue cones, extraction order

        Returns:
            TrackDirection: current state
        """
        if self._state.determined:
            return self._state

        if not yellow_centers or not blue_objects:
            return self._state

        # Blue uses the box's left edge, not its center
        left = yellow_centers[0].x < self.threshold or blue_objects[0].x > self.threshold
        self._state = TrackDirection.COUNTER_CLOCKWISE if left else TrackDirection.CLOCKWISE
        return self._state


# ============================================================
#              ROI SELECTION
# ============================================================

def select_roi(direction, search_roi=(0, 260, 640, 220), tracking_roi=(214, 316, 207, 50)):
    """
    Pick the crop rectangle for the next frame.

    Args:
        direction: Current TrackDirection
        search_roi: (x, y, w, h) used while undetermined
        tracking_roi: (x, y, w, h) used once the direction is latched

    Returns:
        SteeringWindow
    """
    rect = tracking_roi if direction.determined else search_roi
    return SteeringWindow(*rect)


def crop_to_window(image, window: SteeringWindow) -> Tuple[object, SteeringWindow]:
    """
    Crop an image to a window, clipped to the image bounds.

    Returns:
        tuple: (cropped view, effective window). The effective window has
        zero width or height when it lies outside the image.
    """
    h, w = image.shape[:2]
    x0 = min(max(window.x, 0), w)
    y0 = min(max(window.y, 0), h)
    x1 = min(max(window.x + window.width, x0), w)
    y1 = min(max(window.y + window.height, y0), h)
    return image[y0:y1, x0:x1], SteeringWindow(x0, y0, x1 - x0, y1 - y0)
