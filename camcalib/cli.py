"""Shared command-line front-end for the calibration tools.

Both tools accept the same options; only the second one lets the user pick
the number of cameras. With ``--video`` the recorded file is calibrated
directly, otherwise the cameras are recorded first and the new recording is
calibrated. Help, parse errors and any typed error end with status -1.
"""

import argparse
import logging
import sys
from typing import List, Optional
import yaml

from camcalib.camera import FrameSource
from camcalib.config import SessionConfig
from camcalib.dispatcher import CalibrationStrategy, run_calibration
from camcalib.errors import CamcalibError, InvalidArguments, InvalidGeometry
from camcalib.logger import setup_logger
from camcalib.pattern import PatternGeometry
from camcalib.recorder import SessionRecorder

DEFAULT_PARAMS = "params.yml"
DEFAULT_WRITER_PATH = "calibration_video.avi"


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise InvalidArguments(message)


def str2bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def build_parser(prog: str, description: str, choose_cameras: bool) -> argparse.ArgumentParser:
    # -h is the pattern height, help lives on -q / -? / --help / --usage
    ap = _Parser(prog=prog, description=description, add_help=False)
    ap.add_argument("-v", "--video", type=str, default="", help="video to process")
    if choose_cameras:
        ap.add_argument("-noc", "--number_of_cameras", type=int, default=2, help="number of cameras (1 or 2)")
    ap.add_argument("-w", "--width_pattern_size", type=int, default=None, help="chessboard size width")
    ap.add_argument("-h", "--height_pattern_size", type=int, default=None, help="chessboard size height")
    ap.add_argument("-s", "--square_size", type=float, default=1.0, help="chessboard square size")
    ap.add_argument("-p", "--output_params", type=str, default=DEFAULT_PARAMS, help="path to calib params")
    ap.add_argument("-wp", "--writer_path", type=str, default=DEFAULT_WRITER_PATH, help="path to output video")
    ap.add_argument("-c", "--color", type=str2bool, default=True, help="writer color (1/0)")
    ap.add_argument("--config", type=str, default=None, help="session config YAML")
    ap.add_argument("--verbose", action="store_true", help="debug logging")
    ap.add_argument("-q", "-?", "--help", "--usage", dest="help", action="store_true", help="print help message")
    return ap


def record_session(args, number_of_cameras: int, cfg: SessionConfig) -> str:
    writer_path = args.writer_path or DEFAULT_WRITER_PATH
    print(f">> Video path: {writer_path}")
    source = FrameSource(
        number_of_cameras,
        devices=cfg.devices,
        frame_grab=cfg.frame_grab,
        default_fps=cfg.recording.default_fps,
    )
    result = SessionRecorder(source, writer_path, args.color, cfg.recording).record()
    return result.path


def run(argv: Optional[List[str]], prog: str, description: str, choose_cameras: bool, default_cameras: int = 2) -> int:
    parser = build_parser(prog, description, choose_cameras)
    try:
        args = parser.parse_args(argv)
    except InvalidArguments as e:
        parser.print_usage(sys.stderr)
        print(f"{prog}: error: {e}", file=sys.stderr)
        return -1

    if args.help:
        parser.print_help()
        return -1

    try:
        cfg = SessionConfig.load(args.config) if args.config else SessionConfig()
    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        print(f"{prog}: error: cannot load config {args.config}: {e}", file=sys.stderr)
        return -1
    setup_logger("camcalib", cfg.log_file, logging.DEBUG if args.verbose else logging.INFO)

    number_of_cameras = args.number_of_cameras if choose_cameras else default_cameras
    try:
        if args.width_pattern_size is None or args.height_pattern_size is None:
            raise InvalidGeometry("width_pattern_size and height_pattern_size are required")
        geometry = PatternGeometry(args.width_pattern_size, args.height_pattern_size, args.square_size)
        CalibrationStrategy.from_camera_count(number_of_cameras)

        if args.video:
            return run_calibration(args.video, geometry, args.output_params, number_of_cameras, cfg)

        video_path = record_session(args, number_of_cameras, cfg)
        return run_calibration(video_path, geometry, args.output_params, number_of_cameras, cfg)
    except CamcalibError as e:
        print(f"{prog}: error: {e}", file=sys.stderr)
        return -1
