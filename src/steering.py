"""
Steering Estimation
===================
Maps one cone's position inside the active window to a steering angle.

The response is piecewise linear: it saturates at MAX_ANGLE while the cone
sits on its expected side of the window and decays linearly once the cone
crosses toward the other side.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence

from direction_detection import DirectionNotLatchedError, TrackDirection
from pipeline import ObjectCenter

# Maximum steerable angle of the vehicle, radians
MAX_ANGLE = 0.290888


class ConeColor(IntEnum):
    YELLOW = 0
    BLUE = 1


@dataclass(frozen=True)
class SteeringResult:
    angle: float
    direction_value: float
    color: ConeColor
    center: ObjectCenter


def _is_left_side(direction: bool, cone_color: int) -> bool:
    return (direction and cone_color == ConeColor.YELLOW) or (
        not direction and cone_color == ConeColor.BLUE
    )


def steering_wheel_angle(direction, cone_color, x, window_size, buffer=5):
    """
    Steering angle for a cone at column x of a window_size wide ROI.

    Args:
        direction: True = clockwise, False = counter-clockwise
        cone_color: ConeColor.YELLOW (0) or ConeColor.BLUE (1)
        x: Cone center x, in ROI coordinates
        window_size: ROI width in pixels (> 0)
        buffer: Dead band in pixels around the window center

    Returns:
        float: Angle in radians within [-MAX_ANGLE, MAX_ANGLE].
               0.0 for an unknown color.
    """
    if cone_color not in (ConeColor.YELLOW, ConeColor.BLUE):
        return 0.0

    half = window_size // 2
    if _is_left_side(direction, cone_color):
        boundary = half - buffer
        if x >= boundary or boundary <= 0:
            angle = -MAX_ANGLE
        else:
            angle = -(MAX_ANGLE / boundary) * x
    else:
        boundary = half + buffer
        if x <= boundary or boundary >= window_size:
            angle = MAX_ANGLE
        else:
            angle = MAX_ANGLE - (MAX_ANGLE / (window_size - boundary)) * (x - boundary)

    # x outside [0, window_size] would overshoot the linear segments
    return max(-MAX_ANGLE, min(MAX_ANGLE, angle))


def steering_wheel_direction(direction, cone_color, x, window_size, buffer=5):
    """
    Signed variant of steering_wheel_angle, comparable to the reference
    steering request.

    YELLOW: clockwise -> -angle, counter-clockwise -> MAX_ANGLE - angle.
    BLUE mirrors it: counter-clockwise -> angle, clockwise -> -MAX_ANGLE - angle.
    Not clamped.
    """
    if cone_color not in (ConeColor.YELLOW, ConeColor.BLUE):
        return 0.0

    angle = steering_wheel_angle(direction, cone_color, x, window_size, buffer)
    if cone_color == ConeColor.YELLOW:
        return -angle if direction else MAX_ANGLE - angle
    return -MAX_ANGLE - angle if direction else angle


def select_representative(yellow_centers: Sequence[ObjectCenter], blue_centers: Sequence[ObjectCenter]):
    """
    Pick the cone to steer from: first blue if any, else first yellow.

    Returns:
        tuple: (ConeColor, ObjectCenter) or None when nothing was detected
    """
    if blue_centers:
        return ConeColor.BLUE, blue_centers[0]
    if yellow_centers:
        return ConeColor.YELLOW, yellow_centers[0]
    return None


def estimate_steering(
    direction: TrackDirection,
    yellow_centers: Sequence[ObjectCenter],
    blue_centers: Sequence[ObjectCenter],
    window_width: int,
    buffer: int = 5,
) -> Optional[SteeringResult]:
    """
    Steering estimate for one frame.

    Raises:
        DirectionNotLatchedError: if direction is still UNDETERMINED
        ValueError: if window_width is not positive

    Returns:
        SteeringResult, or None when no cone is available (no opinion)
    """
    if not direction.determined:
        raise DirectionNotLatchedError("steering requested before the track direction was latched")
    if window_width <= 0:
        raise ValueError(f"window width must be positive, got {window_width}")

    picked = select_representative(yellow_centers, blue_centers)
    if picked is None:
        return None

    color, center = picked
    flag = direction.flag
    return SteeringResult(
        angle=steering_wheel_angle(flag, color, center.x, window_width, buffer),
        direction_value=steering_wheel_direction(flag, color, center.x, window_width, buffer),
        color=color,
        center=center,
    )
