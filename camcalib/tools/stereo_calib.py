"""Record a stereo calibration video from two cameras and calibrate the rig.

Without ``--video`` both cameras are recorded side by side until Esc is
pressed, then the recording is calibrated. With ``--video`` an existing
side-by-side recording is calibrated directly.
"""

from camcalib.cli import run


def main(argv=None):
    return run(
        argv,
        prog="camcalib-stereo",
        description="Stereo camera calibration from a chessboard video.",
        choose_cameras=False,
        default_cameras=2,
    )


if __name__ == "__main__":
    raise SystemExit(main())
