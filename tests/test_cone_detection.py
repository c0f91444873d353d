import numpy as np
import pytest

from cone_detection import FrameRecord, SteeringContext, process_frame
from direction_detection import DirectionDetector, SteeringWindow, TrackDirection
from pipeline import ObjectCenter, get_pipeline_defaults, resolve_pipeline_params
from steering import MAX_ANGLE, ConeColor, SteeringResult

YELLOW_BGR = (0, 255, 255)   # HSV (30, 255, 255)
BLUE_BGR = (200, 0, 0)       # HSV (120, 255, 200)


def _frame(blobs=()):
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    for (cx, cy, color) in blobs:
        frame[cy - 30:cy + 30, cx - 20:cx + 20] = color
    return frame


def test_yellow_cone_with_clockwise_latched():
    # Search-sized window kept after the latch so the cone at x=100 stays visible
    params = resolve_pipeline_params({"tracking_roi": (0, 260, 640, 220)})
    context = SteeringContext(detector=DirectionDetector(state=TrackDirection.CLOCKWISE))

    record = process_frame(_frame([(100, 360, YELLOW_BGR)]), 1000, context, params)

    assert record.blue_centers == []
    assert record.yellow_centers
    assert abs(record.yellow_centers[0].x - 100) <= 3
    assert record.steering.color is ConeColor.YELLOW
    assert 0 < abs(record.value) < MAX_ANGLE


def test_latch_happens_once_and_narrows_next_window():
    context = SteeringContext.from_params(get_pipeline_defaults())
    frame = _frame([(100, 360, YELLOW_BGR), (500, 360, BLUE_BGR)])

    first = process_frame(frame, 1, context)
    assert first.window == SteeringWindow(0, 260, 640, 220)
    assert first.direction is TrackDirection.COUNTER_CLOCKWISE
    # Blue preferred; counter-clockwise blue is steered from the left formula
    assert first.steering.color is ConeColor.BLUE
    assert first.value == pytest.approx(-MAX_ANGLE)

    second = process_frame(frame, 2, context)
    assert second.window == SteeringWindow(214, 316, 207, 50)
    assert second.direction is TrackDirection.COUNTER_CLOCKWISE

    # Nothing can undo the latch
    process_frame(_frame([(600, 340, YELLOW_BGR), (20, 340, BLUE_BGR)]), 3, context)
    assert context.direction is TrackDirection.COUNTER_CLOCKWISE


def test_no_estimate_until_direction_is_known():
    context = SteeringContext.from_params(get_pipeline_defaults())
    record = process_frame(_frame([(100, 360, YELLOW_BGR)]), 7, context)
    assert record.direction is TrackDirection.UNDETERMINED
    assert record.value is None
    assert record.to_log_line() == "group_08;7;-0"


def test_empty_frame_gives_sentinel():
    context = SteeringContext(detector=DirectionDetector(state=TrackDirection.CLOCKWISE))
    record = process_frame(_frame(), 42, context)
    assert record.yellow_objects == [] and record.blue_objects == []
    assert record.value is None
    assert record.to_log_line("group_01") == "group_01;42;-0"


def test_bgra_frames_are_accepted():
    params = resolve_pipeline_params({"tracking_roi": (0, 260, 640, 220)})
    context = SteeringContext(detector=DirectionDetector(state=TrackDirection.CLOCKWISE))
    bgr = _frame([(100, 360, YELLOW_BGR)])
    bgra = np.dstack([bgr, np.full(bgr.shape[:2], 255, dtype=np.uint8)])
    record = process_frame(bgra, 1, context, params)
    assert record.yellow_centers


def test_reference_is_sampled_with_the_frame():
    context = SteeringContext.from_params(get_pipeline_defaults())
    context.reference.update(0.125)
    record = process_frame(_frame(), 1, context)
    assert record.reference == 0.125


def test_log_line_value_format():
    record = FrameRecord(
        timestamp=1600000000123456,
        window=SteeringWindow(214, 316, 207, 50),
        direction=TrackDirection.CLOCKWISE,
        reference=0.0,
        yellow_objects=[],
        blue_objects=[],
        yellow_centers=[],
        blue_centers=[ObjectCenter(60, 25)],
        steering=SteeringResult(MAX_ANGLE, 0.0, ConeColor.BLUE, ObjectCenter(60, 25)),
    )
    assert record.to_log_line("group_08") == "group_08;1600000000123456;0.290888"
