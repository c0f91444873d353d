import io

import cv2
import numpy as np
import pytest

from frame_source import (
    ReferenceStreamReader,
    ReferenceSteering,
    VideoFrameSource,
    load_reference_log,
    parse_reference_line,
)


def test_parse_reference_line_forms():
    assert parse_reference_line("0.25\n") == (None, 0.25)
    assert parse_reference_line("123;-0.1") == (123, -0.1)
    assert parse_reference_line("group_08;456;0.0") == (456, 0.0)
    assert parse_reference_line("   ") is None
    assert parse_reference_line("# comment") is None


def test_parse_reference_line_rejects_garbage():
    with pytest.raises(ValueError):
        parse_reference_line("a;b;c;d")
    with pytest.raises(ValueError):
        parse_reference_line("abc")


def test_reference_cell_holds_latest_value():
    cell = ReferenceSteering()
    assert cell.read() == 0.0
    cell.update(0.2)
    cell.update(-0.05)
    assert cell.read() == -0.05


def test_stream_reader_updates_cell():
    cell = ReferenceSteering()
    stream = io.StringIO("0.1\nbad line\n\n1;0.2\ngroup_08;2;0.3\n")
    reader = ReferenceStreamReader(cell, stream)
    reader.start()
    reader.join(timeout=5)
    assert not reader.is_alive()
    assert reader.received == 3
    assert reader.errors == 1
    assert cell.read() == 0.3


def test_load_reference_log(tmp_path):
    path = tmp_path / "ref.csv"
    path.write_text("group_08;100;0.1\ngroup_08;200;-0.2\n0.5\n", encoding="utf-8")
    assert load_reference_log(path) == {100: 0.1, 200: -0.2}


def test_video_source_missing_file(tmp_path):
    with pytest.raises(IOError):
        VideoFrameSource(str(tmp_path / "missing.avi"))


def test_video_source_reads_frames(tmp_path):
    path = str(tmp_path / "clip.avi")
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), 10, (64, 48))
    if not writer.isOpened():
        pytest.skip("MJPG writer not available")
    for i in range(3):
        writer.write(np.full((48, 64, 3), i * 40, dtype=np.uint8))
    writer.release()

    with VideoFrameSource(path) as source:
        items = []
        while True:
            item = source.wait()
            if item is None:
                break
            items.append(item)

    assert len(items) == 3
    frame, _ = items[0]
    assert frame.shape == (48, 64, 3)
    timestamps = [ts for _, ts in items]
    assert timestamps == sorted(timestamps)
