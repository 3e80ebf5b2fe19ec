"""Calibrate a single camera or a stereo pair from a chessboard video.

``--number_of_cameras`` selects the rig: 1 records and calibrates one
camera, 2 records both cameras side by side and runs a stereo calibration.
Press Esc in the preview window to stop recording and start calibration.
"""

from camcalib.cli import run


def main(argv=None):
    return run(
        argv,
        prog="camcalib-calibrate",
        description="Single or stereo camera calibration from a chessboard video.",
        choose_cameras=True,
    )


if __name__ == "__main__":
    raise SystemExit(main())
