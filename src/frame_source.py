"""
Frame and Reference Sources
===========================
Stand-ins for the collaborators that feed the steering pipeline:
1. VideoFrameSource - blocking frame source over a video file or camera
2. ReferenceSteering - lock-guarded cell holding the latest reference value
3. ReferenceStreamReader - background receiver writing into that cell
4. load_reference_log - recorded reference values keyed by timestamp
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

import cv2


# ============================================================
#              FRAME SOURCE
# ============================================================

class VideoFrameSource:
    """
    Blocking frame source backed by cv2.VideoCapture.

    Args:
        source: Video file path, or an int camera index
    """

    def __init__(self, source):
        self.source = source
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            self.cap.release()
            raise IOError(f"Could not open video source: {source}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.total_frames = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self._frame_index = 0

    def wait(self) -> Optional[Tuple[object, int]]:
        """
        Block until the next frame is available.

        Returns:
            tuple: (bgr_frame, timestamp_us), or None at end of stream
        """
        ret, frame = self.cap.read()
        if not ret:
            return None

        pos_ms = self.cap.get(cv2.CAP_PROP_POS_MSEC)
        if pos_ms <= 0 and self._frame_index > 0:
            # Cameras report no position; derive it from the frame rate
            pos_ms = self._frame_index * 1000.0 / self.fps
        self._frame_index += 1
        return frame, int(round(pos_ms * 1000))

    def release(self):
        self.cap.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


# ============================================================
#              REFERENCE STEERING
# ============================================================

class ReferenceSteering:
    """Latest reference steering value, shared between threads under one lock."""

    def __init__(self, value=0.0):
        self._lock = threading.Lock()
        self._value = float(value)

    def update(self, value):
        with self._lock:
            self._value = float(value)

    def read(self) -> float:
        with self._lock:
            return self._value


def parse_reference_line(line):
    """
    Parse one reference line.

    Accepted forms: ``value``, ``timestamp;value``, ``group;timestamp;value``.

    Returns:
        tuple: (timestamp or None, value), or None for blank/comment lines

    Raises:
        ValueError: if the line cannot be parsed
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    parts = [p.strip() for p in line.split(";")]
    if len(parts) == 1:
        return None, float(parts[0])
    if len(parts) == 2:
        return int(parts[0]), float(parts[1])
    if len(parts) == 3:
        return int(parts[1]), float(parts[2])
    raise ValueError(f"Malformed reference line: {line!r}")


class ReferenceStreamReader(threading.Thread):
    """
    Daemon thread that reads reference lines from a text stream and writes
    each value into a ReferenceSteering cell.

    Malformed lines are counted in ``errors`` and skipped.
    """

    def __init__(self, cell: ReferenceSteering, stream):
        super().__init__(name="reference-reader", daemon=True)
        self.cell = cell
        self.stream = stream
        self.received = 0
        self.errors = 0

    def run(self):
        for line in self.stream:
            try:
                parsed = parse_reference_line(line)
            except ValueError:
                self.errors += 1
                continue
            if parsed is None:
                continue
            self.cell.update(parsed[1])
            self.received += 1


def load_reference_log(path) -> Dict[int, float]:
    """
    Load recorded reference values keyed by timestamp (microseconds).

    Lines without a timestamp are skipped.
    """
    values = {}
    with open(path, "r", encoding="utf-8") as fh:
        for line in fh:
            parsed = parse_reference_line(line)
            if parsed is None or parsed[0] is None:
                continue
            values[parsed[0]] = parsed[1]
    return values
