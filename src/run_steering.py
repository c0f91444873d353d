"""
Cone Steering - Video Runner
============================
Runs the cone steering pipeline over a video (or camera) and prints one
diagnostic line per frame in the form ``group;timestamp;value``.

Run examples:
  python3 src/run_steering.py --video data/track.mp4
  python3 src/run_steering.py --video data/track.mp4 --reference data/track_reference.csv --output output/track.avi
  some_publisher | python3 src/run_steering.py --video 0 --reference - --verbose
"""

import argparse
import os
import sys

import cv2

from cone_detection import SteeringContext, process_frame
from diagnostics import BLUE_BGR, YELLOW_BGR, AccuracyTracker, FpsMeter, draw_detections, draw_status
from direction_detection import crop_to_window
from frame_source import ReferenceStreamReader, ReferenceSteering, VideoFrameSource, load_reference_log
from pipeline import resolve_pipeline_params


def _open_writer(output_path, fps, width, height):
    fourcc = cv2.VideoWriter_fourcc(*'XVID')
    out = cv2.VideoWriter(output_path, fourcc, fps, (width, height))
    if not out.isOpened():
        print("[WARN] XVID failed, trying mp4v...")
        fourcc = cv2.VideoWriter_fourcc(*'mp4v')
        out = cv2.VideoWriter(output_path, fourcc, fps, (width, height))
        if not out.isOpened():
            raise IOError(f"Cannot create video writer: {output_path}")
    return out


def process_video(video_source, params, output_path=None, max_frames=None,
                  reference_log=None, reference_stream=None, verbose=False):
    """
    Run the steering pipeline frame by frame.

    Args:
        video_source: Video path or camera index
        params: PipelineDefaults
        output_path: Optional path for an annotated video
        max_frames: Limit number of frames (None = all)
        reference_log: Optional {timestamp: value} recorded reference
        reference_stream: Optional text stream of live reference values
        verbose: Show the frame and ROI windows

    Returns:
        AccuracyTracker with the run's statistics
    """
    source = VideoFrameSource(video_source)

    print(f"{'='*60}")
    print(f"VIDEO INFO")
    print(f"{'='*60}")
    print(f"Input: {video_source}")
    print(f"Resolution: {source.width}x{source.height}")
    print(f"FPS: {source.fps}")
    print(f"Total frames: {source.total_frames}")
    if max_frames:
        print(f"Processing: First {max_frames} frames")
    else:
        print(f"Processing: ALL frames")
    print(f"{'='*60}\n")

    reference = ReferenceSteering()
    reader = None
    if reference_stream is not None:
        reader = ReferenceStreamReader(reference, reference_stream)
        reader.start()

    context = SteeringContext.from_params(params, reference)
    accuracy = AccuracyTracker()
    fps_meter = FpsMeter()

    out = None
    try:
        if output_path:
            out = _open_writer(output_path, source.fps, source.width, source.height)

        frame_count = 0
        detected_count = 0
        latched_at = None

        while True:
            item = source.wait()
            if item is None:
                break
            frame, timestamp = item

            frame_count += 1
            if max_frames and frame_count > max_frames:
                break

            if reference_log is not None and timestamp in reference_log:
                reference.update(reference_log[timestamp])

            record = process_frame(frame, timestamp, context, params)

            if latched_at is None and record.direction.determined:
                latched_at = frame_count
                print(f"[INFO] Direction latched at frame {frame_count}: {record.direction.value}")

            if record.value is not None:
                detected_count += 1
            accuracy.update(record.value, record.reference)
            fps = fps_meter.tick()

            print(record.to_log_line(params.group_id))

            if out is not None or verbose:
                roi_image, _ = crop_to_window(frame, record.window)
                draw_detections(roi_image, record.yellow_objects, YELLOW_BGR)
                draw_detections(roi_image, record.blue_objects, BLUE_BGR)
                draw_status(frame, record, fps=fps, accuracy=accuracy, group_id=params.group_id)

                if out is not None:
                    out.write(frame)
                if verbose:
                    cv2.imshow(str(video_source), frame)
                    cv2.imshow("Region of Interest", roi_image)
                    if cv2.waitKey(1) & 0xFF == ord('q'):
                        break

            if frame_count % 100 == 0:
                print(f"[progress] {frame_count} frames ({detected_count} estimates)", file=sys.stderr)
    finally:
        source.release()
        if out is not None:
            out.release()
        if verbose:
            cv2.destroyAllWindows()

    print(f"\n{'='*60}")
    print(f"PROCESSING COMPLETE")
    print(f"{'='*60}")
    print(f"Total frames processed: {accuracy.total}")
    print(f"Steering estimates: {detected_count}")
    print(f"Direction: {context.direction.value}")
    print(f"Full accurate frames: {accuracy.exact} ({accuracy.exact_pct:.1f}%)")
    print(f"Within 50% deviation: {accuracy.within} ({accuracy.within_pct:.1f}%)")
    if reader is not None:
        print(f"Reference values received: {reader.received} ({reader.errors} malformed)")
    if output_path:
        print(f"Output saved to: {output_path}")
    print(f"{'='*60}")

    return accuracy


def main() -> None:
    """
    Main entry point for the cone steering runner.

    Parses command-line arguments and runs the pipeline over the video.
    """
    p = argparse.ArgumentParser(description="Steering from cone detections")
    p.add_argument("--video", required=True, help="Input video path (or camera index)")
    p.add_argument("--output", default="", help="Optional annotated output video path")
    p.add_argument("--max-frames", type=int, default=None, help="Process at most N frames")
    p.add_argument("--group-id", default=None, help="Group id printed on each diagnostic line")
    p.add_argument(
        "--reference",
        default="",
        help="Recorded reference log (group;timestamp;value), or '-' to read live values from stdin",
    )
    p.add_argument(
        "--direction-threshold",
        type=int,
        default=None,
        help="x coordinate splitting left/right for the direction latch (default: 320)",
    )
    p.add_argument("--buffer", type=int, default=None, help="Dead band around the window center in px (default: 5)")
    p.add_argument("--verbose", action="store_true", help="Show frame and ROI windows")

    args = p.parse_args()

    try:
        params = resolve_pipeline_params({
            "group_id": args.group_id,
            "direction_threshold": args.direction_threshold,
            "steering_buffer": args.buffer,
        })
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(2)

    video_source = int(args.video) if args.video.isdigit() else args.video

    reference_log = None
    reference_stream = None
    if args.reference == "-":
        reference_stream = sys.stdin
    elif args.reference:
        reference_log = load_reference_log(args.reference)
        print(f"[INFO] Loaded {len(reference_log)} reference values from {args.reference}")

    output_path = None
    if args.output:
        output_path = os.path.abspath(args.output)
        os.makedirs(os.path.dirname(output_path), exist_ok=True)

    try:
        process_video(
            video_source,
            params,
            output_path=output_path,
            max_frames=args.max_frames,
            reference_log=reference_log,
            reference_stream=reference_stream,
            verbose=args.verbose,
        )
    except IOError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
