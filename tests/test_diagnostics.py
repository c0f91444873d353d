import numpy as np

from cone_detection import FrameRecord
from diagnostics import AccuracyTracker, FpsMeter, draw_detections, draw_status
from direction_detection import SteeringWindow, TrackDirection
from pipeline import DetectedObject, ObjectCenter


def test_accuracy_exact_and_within_tolerance():
    acc = AccuracyTracker()
    acc.update(0.1, 0.1)      # exact
    acc.update(0.12, 0.1)     # within 50%
    acc.update(0.2, 0.1)      # outside
    acc.update(None, 0.0)     # no estimate counts as 0.0 -> exact
    assert acc.total == 4
    assert acc.exact == 2
    assert acc.within == 3
    assert acc.exact_pct == 50.0
    assert acc.within_pct == 75.0


def test_accuracy_empty_and_reset():
    acc = AccuracyTracker()
    assert acc.exact_pct == 0.0
    acc.update(0.3, 0.3)
    acc.reset()
    assert acc.total == 0


def test_fps_meter_counts():
    meter = FpsMeter(every=2)
    meter.tick()
    assert meter.tick() >= 0


def test_drawing_marks_pixels():
    roi = np.zeros((50, 100, 3), dtype=np.uint8)
    draw_detections(roi, [DetectedObject(10, 10, 20, 20)], (0, 255, 255))
    assert roi[10, 10].tolist() == [0, 255, 255]

    frame = np.zeros((200, 640, 3), dtype=np.uint8)
    record = FrameRecord(
        timestamp=1,
        window=SteeringWindow(0, 0, 100, 50),
        direction=TrackDirection.UNDETERMINED,
        reference=0.0,
        yellow_objects=[],
        blue_objects=[],
        yellow_centers=[ObjectCenter(3, 4)],
        blue_centers=[],
    )
    draw_status(frame, record, fps=30, accuracy=AccuracyTracker())
    assert frame.any()
