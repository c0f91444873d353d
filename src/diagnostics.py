"""
Diagnostics - Accuracy, FPS and Overlay
=======================================
Helpers the runner uses to judge and display the pipeline's output:
1. AccuracyTracker - compares the estimate with the reference steering
2. FpsMeter - frame rate, refreshed every few frames
3. Drawing - cone boxes on the ROI and status text on the frame
"""

import cv2


# ============================================================
#              ACCURACY AGAINST THE REFERENCE
# ============================================================

class AccuracyTracker:
    """
    Count frames where the estimate matches the reference steering.

    - exact: |estimate - reference| < 1e-15
    - within tolerance: |estimate - reference| <= |reference| * tolerance

    A frame without an estimate counts as 0.0.

    Args:
        tolerance: Relative tolerance (default: 0.5, i.e. +/-50%)
    """

    def __init__(self, tolerance=0.5):
        self.tolerance = tolerance
        self.total = 0
        self.exact = 0
        self.within = 0

    def update(self, estimate, reference):
        estimate = 0.0 if estimate is None else float(estimate)
        error = abs(estimate - reference)
        self.total += 1
        if error < 1e-15:
            self.exact += 1
        if error <= abs(reference * self.tolerance):
            self.within += 1

    @property
    def exact_pct(self):
        return 100.0 * self.exact / self.total if self.total else 0.0

    @property
    def within_pct(self):
        return 100.0 * self.within / self.total if self.total else 0.0

    def reset(self):
        self.total = 0
        self.exact = 0
        self.within = 0


# ============================================================
#              FRAME RATE
# ============================================================

class FpsMeter:
    """Frames per second, recomputed every `every` frames with cv2.TickMeter."""

    def __init__(self, every=10):
        self.every = every
        self.fps = 0
        self._frames = 0
        self._tm = cv2.TickMeter()
        self._tm.start()

    def tick(self):
        self._frames += 1
        if self._frames >= self.every:
            self._tm.stop()
            elapsed = self._tm.getTimeSec()
            if elapsed > 0:
                self.fps = int(self._frames / elapsed)
            self._tm.reset()
            self._tm.start()
            self._frames = 0
        return self.fps


# ============================================================
#              DRAWING & VISUALIZATION
# ============================================================

YELLOW_BGR = (0, 255, 255)
BLUE_BGR = (255, 0, 0)
TEXT_BGR = (255, 255, 255)


def draw_detections(roi_image, objects, color, thickness=1):
    """
    Draw bounding boxes on the ROI image.

    Args:
        roi_image: BGR crop to draw on (will be modified)
        objects: DetectedObject list in ROI coordinates
        color: BGR color tuple

    Returns:
        roi_image
    """
    for o in objects:
        cv2.rectangle(roi_image, (o.x, o.y), (o.x + o.width, o.y + o.height), color, thickness)
    return roi_image


def _format_centers(label, centers):
    return label + " ".join(f"({c.x},{c.y})" for c in centers)


def draw_status(frame, record, fps=None, accuracy=None, group_id="group_08"):
    """
    Write the frame's diagnostic text in the top-left corner.

    Args:
        frame: BGR image to draw on (will be modified)
        record: FrameRecord for this frame
        fps: Optional frame rate
        accuracy: Optional AccuracyTracker

    Returns:
        frame
    """
    value = record.value if record.value is not None else 0.0
    lines = [
        f"ts: {record.timestamp}; {group_id}; {record.direction.value}",
        f"GroundSteeringRequest: Sample:{record.reference:g}; Algorithm: {value:g}",
        _format_centers("Yellow objects: ", record.yellow_centers),
        _format_centers("Blue objects: ", record.blue_centers),
    ]
    if accuracy is not None:
        lines.append(f"Full accurate %: {accuracy.exact_pct:.1f}%")
        lines.append(f"50% deviation %: {accuracy.within_pct:.1f}%")

    y = 25
    for text in lines:
        cv2.putText(frame, text, (0, y), cv2.FONT_HERSHEY_COMPLEX_SMALL, 0.7, TEXT_BGR, 1)
        y += 15

    if fps is not None:
        cv2.putText(frame, str(fps), (10, y + 20), cv2.FONT_HERSHEY_COMPLEX_SMALL, 1, (0, 255, 0))

    return frame
