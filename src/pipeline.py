"""
Cone Detection Pipeline - Segmentation and Shape Extraction
=============================================================
This module contains the image-processing part of the pipeline:
1. Color Segmentation (HSV range)
2. Mask Refinement (morphological erode/dilate)
3. Contour / Shape Extraction (Canny + contours + bounding boxes)
4. Object Location (bounding box centers)

Everything after locating the cones (direction latch, ROI, steering) lives in
direction_detection.py and steering.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np


# ============================================================
#                    DATA TYPES
# ============================================================

@dataclass(frozen=True)
class ColorRange:
    """Closed HSV interval ``lower <= pixel <= upper`` on all three channels.

    Raises:
        ValueError: if either bound is not a 3-channel triple or if
            ``lower > upper`` on any channel.
    """

    lower: Tuple[int, int, int]
    upper: Tuple[int, int, int]

    def __post_init__(self):
        if len(self.lower) != 3 or len(self.upper) != 3:
            raise ValueError(f"ColorRange needs 3 channels, got {self.lower} / {self.upper}")
        for channel, (lo, hi) in enumerate(zip(self.lower, self.upper)):
            if lo > hi:
                raise ValueError(
                    f"ColorRange min > max on channel {channel}: {self.lower} > {self.upper}"
                )


@dataclass(frozen=True)
class DetectedObject:
    """Axis-aligned bounding box in ROI coordinates (top-left corner + size)."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class ObjectCenter:
    x: int
    y: int


# Tuned on the recorded track footage
YELLOW_RANGE = ColorRange(lower=(19, 0, 99), upper=(30, 255, 255))
BLUE_RANGE = ColorRange(lower=(74, 91, 40), upper=(133, 255, 216))

# (operation, elliptical kernel size) applied in order
DEFAULT_REFINE_STEPS: Tuple[Tuple[str, int], ...] = (
    ("erode", 8),
    ("dilate", 8),
    ("dilate", 5),
    ("erode", 7),
)

# Rectangles are (x, y, width, height)
Rect = Tuple[int, int, int, int]


# ============================================================
#              PIPELINE DEFAULTS (SINGLE SOURCE OF TRUTH)
# ============================================================

@dataclass(frozen=True)
class PipelineDefaults:
    """Default parameters for the cone steering pipeline.

    Notes:
    - The 320 direction threshold refers to the full 640px frame, not to the
      active ROI.
    - ROIs are in full-frame pixel coordinates.
    """

    # Color classes
    yellow_range: ColorRange = YELLOW_RANGE
    blue_range: ColorRange = BLUE_RANGE

    # Mask refinement
    refine_steps: Tuple[Tuple[str, int], ...] = DEFAULT_REFINE_STEPS

    # Shape extraction (Canny uses threshold and 2 * threshold)
    canny_threshold: int = 100
    approx_epsilon: float = 3.0

    # ROI geometry: wide search window before the latch, narrow window after
    search_roi: Rect = (0, 260, 640, 220)
    tracking_roi: Rect = (214, 316, 207, 50)

    # Direction latch / steering
    direction_threshold: int = 320
    steering_buffer: int = 5

    # Diagnostics
    group_id: str = "group_08"


def get_pipeline_defaults() -> PipelineDefaults:
    """Return default pipeline parameters."""
    return PipelineDefaults()


def _check_rect(name: str, rect: Sequence[int]) -> Rect:
    if len(rect) != 4:
        raise ValueError(f"{name} must be (x, y, width, height), got {rect}")
    x, y, w, h = (int(v) for v in rect)
    if w <= 0 or h <= 0:
        raise ValueError(f"{name} must have a positive size, got {rect}")
    return x, y, w, h


def resolve_pipeline_params(overrides: Optional[Dict[str, Any]] = None) -> PipelineDefaults:
    """
    Return defaults with optional overrides applied.

    Overrides set to None are ignored so CLI flags can be passed straight in.

    Args:
        overrides: Optional dictionary of parameter overrides

    Returns:
        PipelineDefaults: Parameter dataclass with overrides applied

    Raises:
        ValueError: on unknown keys or invalid values

    Example:
        params = resolve_pipeline_params({"direction_threshold": 103})
    """
    base = get_pipeline_defaults()
    if not overrides:
        return base

    data = base.__dict__.copy()
    for k, v in overrides.items():
        if k not in data:
            raise ValueError(f"Unknown pipeline parameter: {k}")
        if v is not None:
            data[k] = v

    data["search_roi"] = _check_rect("search_roi", data["search_roi"])
    data["tracking_roi"] = _check_rect("tracking_roi", data["tracking_roi"])
    data["refine_steps"] = tuple((str(op), int(size)) for op, size in data["refine_steps"])
    if data["canny_threshold"] <= 0:
        raise ValueError(f"canny_threshold must be positive, got {data['canny_threshold']}")
    if data["steering_buffer"] < 0:
        raise ValueError(f"steering_buffer must be >= 0, got {data['steering_buffer']}")
    return PipelineDefaults(**data)


# ============================================================
#                1. COLOR SEGMENTATION
# ============================================================

def segment_color(hsv, color_range):
    """
    Threshold an HSV image against a color range.

    Args:
        hsv: HSV image (H x W x 3, uint8)
        color_range: ColorRange with inclusive bounds

    Returns:
        mask: Binary mask (255 = in range, 0 = background).
              Empty input gives an empty mask.
    """
    if hsv is None or hsv.size == 0:
        shape = hsv.shape[:2] if hsv is not None else (0, 0)
        return np.zeros(shape, dtype=np.uint8)

    lower = np.array(color_range.lower, dtype=np.uint8)
    upper = np.array(color_range.upper, dtype=np.uint8)
    return cv2.inRange(hsv, lower, upper)


# ============================================================
#                2. MASK REFINEMENT
# ============================================================

def refine_mask(mask, steps=DEFAULT_REFINE_STEPS):
    """
    Remove speckle noise and close small holes in a binary mask.

    Default order: erode 8x8, dilate 8x8 (opening), then dilate 5x5,
    erode 7x7 (closing). All kernels are elliptical.

    Args:
        mask: Binary mask (modified in place)
        steps: Sequence of ("erode" | "dilate", kernel_size)

    Returns:
        mask: The same array, refined
    """
    if mask.size == 0:
        return mask

    refined = mask
    for op, size in steps:
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
        if op == "erode":
            refined = cv2.erode(refined, kernel)
        elif op == "dilate":
            refined = cv2.dilate(refined, kernel)
        else:
            raise ValueError(f"Unknown morphology operation: {op}")

    mask[...] = refined
    return mask


# ============================================================
#                3. SHAPE EXTRACTION
# ============================================================

def detect_edges(mask, threshold=100):
    """
    Run Canny on a refined mask with hysteresis thresholds (T, 2T).

    Returns:
        edges: Binary edge map (255 = edge, 0 = no edge)
    """
    return cv2.Canny(mask, threshold, threshold * 2)


def find_boundaries(edges):
    """
    Extract closed boundary curves from an edge map.

    Uses the full contour tree with simple chain approximation.

    Returns:
        contours: List of point arrays, in extraction order
    """
    contours, _hierarchy = cv2.findContours(edges, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
    return list(contours)


def bounding_boxes(contours, epsilon=3.0) -> List[DetectedObject]:
    """
    Approximate each contour with a closed polygon and fit its bounding box.

    Args:
        contours: Boundary curves from find_boundaries()
        epsilon: Polygon approximation tolerance in pixels

    Returns:
        List of DetectedObject, one per contour, same order
    """
    objects = []
    for contour in contours:
        poly = cv2.approxPolyDP(contour, epsilon, True)
        x, y, w, h = cv2.boundingRect(poly)
        objects.append(DetectedObject(int(x), int(y), int(w), int(h)))
    return objects


def extract_objects(mask, threshold=100, epsilon=3.0) -> List[DetectedObject]:
    """
    Full shape extraction: edges -> boundaries -> polygons -> boxes.

    Returns an empty list (never raises) when no boundary is found.
    """
    if mask.size == 0:
        return []
    edges = detect_edges(mask, threshold)
    return bounding_boxes(find_boundaries(edges), epsilon)


# ============================================================
#                4. OBJECT LOCATION
# ============================================================

def object_centers(objects: Sequence[DetectedObject]) -> List[ObjectCenter]:
    """Reduce each box to its integer center, preserving order."""
    return [ObjectCenter(o.x + o.width // 2, o.y + o.height // 2) for o in objects]


def detect_cones(hsv_roi, color_range, params: Optional[PipelineDefaults] = None):
    """
    Run the four stages above for one color class.

    Args:
        hsv_roi: Cropped HSV image
        color_range: ColorRange to segment
        params: PipelineDefaults (defaults when None)

    Returns:
        tuple: (objects, centers)
    """
    params = params or get_pipeline_defaults()
    mask = segment_color(hsv_roi, color_range)
    refine_mask(mask, params.refine_steps)
    objects = extract_objects(mask, params.canny_threshold, params.approx_epsilon)
    return objects, object_centers(objects)
