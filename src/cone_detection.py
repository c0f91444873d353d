"""
Cone Detection - Per-Frame Processing
=====================================
Glues the pipeline stages into one call per frame:
1. BGR -> HSV and ROI crop (search or tracking window)
2. Cone detection for both colors (pipeline.py)
3. One-shot direction latch (direction_detection.py)
4. Steering estimate (steering.py)
5. Diagnostic record for the frame

The only state carried between frames is the SteeringContext.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import cv2

from direction_detection import (
    DirectionDetector,
    SteeringWindow,
    TrackDirection,
    crop_to_window,
    select_roi,
)
from frame_source import ReferenceSteering
from pipeline import DetectedObject, ObjectCenter, PipelineDefaults, detect_cones, get_pipeline_defaults
from steering import SteeringResult, estimate_steering

NO_ESTIMATE = "-0"


@dataclass
class SteeringContext:
    """State passed from frame to frame: the direction latch and the reference cell."""

    detector: DirectionDetector
    reference: ReferenceSteering = field(default_factory=ReferenceSteering)

    @classmethod
    def from_params(cls, params: PipelineDefaults, reference: Optional[ReferenceSteering] = None):
        return cls(
            detector=DirectionDetector(threshold=params.direction_threshold),
            reference=reference or ReferenceSteering(),
        )

    @property
    def direction(self) -> TrackDirection:
        return self.detector.state


@dataclass
class FrameRecord:
    timestamp: int
    window: SteeringWindow
    direction: TrackDirection
    reference: float
    yellow_objects: List[DetectedObject]
    blue_objects: List[DetectedObject]
    yellow_centers: List[ObjectCenter]
    blue_centers: List[ObjectCenter]
    steering: Optional[SteeringResult] = None

    @property
    def value(self) -> Optional[float]:
        return self.steering.angle if self.steering is not None else None

    def to_log_line(self, group_id="group_08") -> str:
        """Render as ``group;timestamp;value`` with ``-0`` when there is no estimate."""
        value = NO_ESTIMATE if self.value is None else f"{self.value:g}"
        return f"{group_id};{self.timestamp};{value}"


def to_hsv(frame):
    """Convert a BGR or BGRA frame to HSV."""
    if frame.ndim == 3 and frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)


def process_frame(frame, timestamp, context: SteeringContext, params: Optional[PipelineDefaults] = None):
    """
    Run the full pipeline on one frame.

    The ROI is chosen from the latch state before this frame; a latch made
    on this frame only narrows the window from the next frame on.

    Args:
        frame: BGR (or BGRA) image
        timestamp: Capture timestamp (microseconds)
        context: SteeringContext carried across frames
        params: PipelineDefaults (defaults when None)

    Returns:
        FrameRecord
    """
    params = params or get_pipeline_defaults()

    # The reference is sampled together with the frame
    reference = context.reference.read()

    hsv = to_hsv(frame)
    window = select_roi(context.direction, params.search_roi, params.tracking_roi)
    hsv_roi, window = crop_to_window(hsv, window)

    yellow_objects, yellow_centers = detect_cones(hsv_roi, params.yellow_range, params)
    blue_objects, blue_centers = detect_cones(hsv_roi, params.blue_range, params)

    direction = context.detector.update(yellow_centers, blue_objects)

    record = FrameRecord(
        timestamp=timestamp,
        window=window,
        direction=direction,
        reference=reference,
        yellow_objects=yellow_objects,
        blue_objects=blue_objects,
        yellow_centers=yellow_centers,
        blue_centers=blue_centers,
    )

    if direction.determined and window.width > 0:
        record.steering = estimate_steering(
            direction,
            yellow_centers,
            blue_centers,
            window.width,
            params.steering_buffer,
        )

    return record
