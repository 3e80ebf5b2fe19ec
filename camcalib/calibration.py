"""Chessboard calibration for a single camera or a side-by-side stereo rig.

A calibration collects chessboard detections from a recorded video (or any
iterable of frames), solves for the camera parameters and writes them to a
YAML file. A reader loads that file back, derives summary quantities and
prints them. Both variants share the same calls:

    calibration.calibrate_video(path); calibration.write_params()
    reader.read(); reader.compute_params(); reader.show()

Stereo recordings hold the left camera in the left half of each frame and
the right camera in the right half.
"""

import logging
import os
from typing import Iterable, List, Optional
import yaml
import cv2
import numpy as np

from camcalib.config import CalibrationConfig
from camcalib.errors import CalibrationError, FrameSizeMismatch, InsufficientFrames
from camcalib.geometry import baseline_length, field_of_view_deg, rotation_angle_deg
from camcalib.pattern import ChessboardDetector, PatternGeometry, image_size

logger = logging.getLogger(__name__)

RIG_SINGLE = "single"
RIG_STEREO = "stereo"


def _matrix(value) -> np.ndarray:
    return np.array(value, dtype=np.float64)


def split_stereo(frame: np.ndarray):
    """Split a side-by-side stereo frame into its left and right halves."""
    width = frame.shape[1]
    if width % 2:
        raise FrameSizeMismatch((width + 1, frame.shape[0]), (width, frame.shape[0]))
    half = width // 2
    return frame[:, :half], frame[:, half:]


class Calibration:
    rig = None

    def __init__(self, geometry: PatternGeometry, params_path: str, config: Optional[CalibrationConfig] = None):
        self.geometry = geometry
        self.params_path = params_path
        self.config = config or CalibrationConfig()
        self.detector = ChessboardDetector(geometry, self.config.subpix_window)
        self.object_points = geometry.object_points()
        self.image_size = None
        self.frames_seen = 0
        self.results = None

    @property
    def frames_used(self) -> int:
        raise NotImplementedError

    def add_frame(self, frame: np.ndarray) -> bool:
        """Feed one frame; return True when it was accepted."""
        raise NotImplementedError

    def calibrate(self) -> float:
        """Solve for the parameters and return the RMS reprojection error."""
        raise NotImplementedError

    def params(self) -> dict:
        raise NotImplementedError

    def _check_image_size(self, size) -> None:
        if self.image_size is None:
            self.image_size = size
        elif self.image_size != size:
            raise FrameSizeMismatch(self.image_size, size)

    def _require_frames(self) -> None:
        if self.frames_used < self.config.min_frames:
            raise InsufficientFrames(self.frames_used, self.config.min_frames)

    def calibrate_frames(self, frames: Iterable[np.ndarray]) -> float:
        step = max(1, self.config.frame_step)
        for index, frame in enumerate(frames):
            if index % step:
                continue
            self.frames_seen += 1
            if self.add_frame(frame):
                logger.debug("Chessboard found in frame %d (%d accepted)", index, self.frames_used)
                if self.config.max_frames and self.frames_used >= self.config.max_frames:
                    break
        logger.info("Chessboard detected in %d of %d sampled frame(s)", self.frames_used, self.frames_seen)
        return self.calibrate()

    def calibrate_video(self, video_path: str) -> float:
        """Run the calibration on every ``frame_step``-th frame of a video."""
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            cap.release()
            raise CalibrationError(f"cannot open video {video_path}")

        def frames():
            while True:
                ok, frame = cap.read()
                if not ok:
                    return
                yield frame

        try:
            return self.calibrate_frames(frames())
        finally:
            cap.release()

    def write_params(self) -> None:
        if self.results is None:
            raise CalibrationError("nothing to write, run the calibration first")
        data = {
            "rig": self.rig,
            "image_width": int(self.image_size[0]),
            "image_height": int(self.image_size[1]),
            "pattern": self.geometry.as_dict(),
            "frames_used": self.frames_used,
        }
        data.update(self.params())
        directory = os.path.dirname(self.params_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.params_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)
        logger.info("Saved calibration parameters to %s", self.params_path)


class SingleCalibration(Calibration):
    rig = RIG_SINGLE

    def __init__(self, geometry: PatternGeometry, params_path: str, config: Optional[CalibrationConfig] = None):
        super().__init__(geometry, params_path, config)
        self.img_points: List[np.ndarray] = []

    @property
    def frames_used(self) -> int:
        return len(self.img_points)

    def add_frame(self, frame: np.ndarray) -> bool:
        self._check_image_size(image_size(frame))
        corners = self.detector.detect(frame)
        if corners is None:
            return False
        self.img_points.append(corners)
        return True

    def calibrate(self) -> float:
        self._require_frames()
        objpoints = [self.object_points] * len(self.img_points)
        try:
            rms, K, dist, _, _ = cv2.calibrateCamera(objpoints, self.img_points, self.image_size, None, None)
        except cv2.error as e:
            raise CalibrationError(f"camera calibration failed: {e}") from e
        self.results = {"rms": float(rms), "camera_matrix": K, "dist_coeffs": dist}
        logger.info("RMS reprojection error: %.4f", rms)
        return float(rms)

    def params(self) -> dict:
        return {
            "rms": self.results["rms"],
            "camera_matrix": self.results["camera_matrix"].tolist(),
            "dist_coeffs": self.results["dist_coeffs"].ravel().tolist(),
        }


class StereoCalibration(Calibration):
    rig = RIG_STEREO

    def __init__(self, geometry: PatternGeometry, params_path: str, config: Optional[CalibrationConfig] = None):
        super().__init__(geometry, params_path, config)
        self.left_points: List[np.ndarray] = []
        self.right_points: List[np.ndarray] = []

    @property
    def frames_used(self) -> int:
        return len(self.left_points)

    def add_frame(self, frame: np.ndarray) -> bool:
        left, right = split_stereo(frame)
        self._check_image_size(image_size(left))
        left_corners = self.detector.detect(left)
        if left_corners is None:
            return False
        right_corners = self.detector.detect(right)
        if right_corners is None:
            return False
        self.left_points.append(left_corners)
        self.right_points.append(right_corners)
        return True

    def calibrate(self) -> float:
        self._require_frames()
        objpoints = [self.object_points] * len(self.left_points)
        criteria = (cv2.TERM_CRITERIA_MAX_ITER + cv2.TERM_CRITERIA_EPS, 100, 1e-5)
        try:
            rms_l, K1, d1, _, _ = cv2.calibrateCamera(objpoints, self.left_points, self.image_size, None, None)
            rms_r, K2, d2, _, _ = cv2.calibrateCamera(objpoints, self.right_points, self.image_size, None, None)
            rms, K1, d1, K2, d2, R, T, E, F = cv2.stereoCalibrate(
                objpoints, self.left_points, self.right_points, K1, d1, K2, d2, self.image_size,
                criteria=criteria, flags=cv2.CALIB_FIX_INTRINSIC,
            )
        except cv2.error as e:
            raise CalibrationError(f"stereo calibration failed: {e}") from e
        self.results = {
            "rms": float(rms),
            "left": {"rms": float(rms_l), "camera_matrix": K1, "dist_coeffs": d1},
            "right": {"rms": float(rms_r), "camera_matrix": K2, "dist_coeffs": d2},
            "R": R, "T": T, "E": E, "F": F,
        }
        logger.info("Stereo RMS reprojection error: %.4f (left %.4f, right %.4f)", rms, rms_l, rms_r)
        return float(rms)

    def params(self) -> dict:
        r = self.results
        cams = {}
        for side in ("left", "right"):
            cams[side] = {
                "rms": r[side]["rms"],
                "camera_matrix": r[side]["camera_matrix"].tolist(),
                "dist_coeffs": r[side]["dist_coeffs"].ravel().tolist(),
            }
        return {
            "rms": r["rms"],
            "left": cams["left"],
            "right": cams["right"],
            "R": r["R"].tolist(),
            "T": r["T"].ravel().tolist(),
            "E": r["E"].tolist(),
            "F": r["F"].tolist(),
        }


class CalibrationReader:
    rig = None

    def __init__(self, params_path: str):
        self.params_path = params_path
        self.data = None
        self.derived = None

    def read(self) -> dict:
        if not os.path.isfile(self.params_path):
            raise CalibrationError(f"parameter file {self.params_path} does not exist")
        with open(self.params_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if data.get("rig") != self.rig:
            raise CalibrationError(
                f"{self.params_path} holds {data.get('rig')!r} parameters, expected {self.rig!r}"
            )
        self.data = data
        self.derived = None
        return data

    @property
    def image_size(self):
        return int(self.data["image_width"]), int(self.data["image_height"])

    def compute_params(self) -> dict:
        raise NotImplementedError

    def summary_lines(self) -> List[str]:
        raise NotImplementedError

    def show(self) -> str:
        """Print a human-readable summary and return it."""
        if self.data is None:
            self.read()
        if self.derived is None:
            self.compute_params()
        pattern = self.data.get("pattern", {})
        lines = [
            f">> Calibration parameters: {self.params_path}",
            f"  Rig: {self.rig}",
            f"  Image size: {self.image_size[0]}x{self.image_size[1]}",
            f"  Pattern: {pattern.get('columns')}x{pattern.get('rows')}, square {pattern.get('square_size')}",
            f"  Frames used: {self.data.get('frames_used')}",
            f"  RMS error: {self.data['rms']:.4f}",
        ]
        lines.extend(self.summary_lines())
        text = "\n".join(lines)
        print(text)
        return text


class SingleCalibrationReader(CalibrationReader):
    rig = RIG_SINGLE

    def compute_params(self) -> dict:
        if self.data is None:
            self.read()
        K = _matrix(self.data["camera_matrix"])
        dist = _matrix(self.data["dist_coeffs"])
        fov_x, fov_y = field_of_view_deg(K, self.image_size)
        new_K, roi = cv2.getOptimalNewCameraMatrix(K, dist, self.image_size, 0)
        self.derived = {
            "camera_matrix": K,
            "dist_coeffs": dist,
            "fov_deg": (fov_x, fov_y),
            "principal_point": (float(K[0, 2]), float(K[1, 2])),
            "new_camera_matrix": new_K,
            "roi": tuple(int(v) for v in roi),
        }
        return self.derived

    def summary_lines(self) -> List[str]:
        d = self.derived
        K = d["camera_matrix"]
        return [
            f"  Focal length: fx={K[0, 0]:.2f} fy={K[1, 1]:.2f}",
            f"  Principal point: ({d['principal_point'][0]:.2f}, {d['principal_point'][1]:.2f})",
            f"  Field of view: {d['fov_deg'][0]:.2f} x {d['fov_deg'][1]:.2f} deg",
            f"  Distortion: {np.array2string(d['dist_coeffs'].ravel(), precision=5)}",
            f"  Valid ROI after undistortion: {d['roi']}",
        ]


class StereoCalibrationReader(CalibrationReader):
    rig = RIG_STEREO

    def compute_params(self) -> dict:
        if self.data is None:
            self.read()
        K1 = _matrix(self.data["left"]["camera_matrix"])
        d1 = _matrix(self.data["left"]["dist_coeffs"])
        K2 = _matrix(self.data["right"]["camera_matrix"])
        d2 = _matrix(self.data["right"]["dist_coeffs"])
        R = _matrix(self.data["R"])
        T = _matrix(self.data["T"]).reshape(3, 1)
        R1, R2, P1, P2, Q, roi1, roi2 = cv2.stereoRectify(K1, d1, K2, d2, self.image_size, R, T, alpha=0)
        self.derived = {
            "R1": R1, "R2": R2, "P1": P1, "P2": P2, "Q": Q,
            "roi_left": tuple(int(v) for v in roi1),
            "roi_right": tuple(int(v) for v in roi2),
            "baseline": baseline_length(T),
            "rotation_deg": rotation_angle_deg(R),
            "fov_left_deg": field_of_view_deg(K1, self.image_size),
            "fov_right_deg": field_of_view_deg(K2, self.image_size),
        }
        return self.derived

    def summary_lines(self) -> List[str]:
        d = self.derived
        lines = []
        for side in ("left", "right"):
            K = _matrix(self.data[side]["camera_matrix"])
            fov = d[f"fov_{side}_deg"]
            lines.append(
                f"  {side.capitalize()}: fx={K[0, 0]:.2f} fy={K[1, 1]:.2f} "
                f"cx={K[0, 2]:.2f} cy={K[1, 2]:.2f} fov={fov[0]:.2f}x{fov[1]:.2f} deg "
                f"rms={self.data[side]['rms']:.4f}"
            )
        lines += [
            f"  Baseline: {d['baseline']:.4f}",
            f"  Relative rotation: {d['rotation_deg']:.3f} deg",
            f"  Rectified focal length: {d['P1'][0, 0]:.2f}",
            f"  Valid ROI left {d['roi_left']}, right {d['roi_right']}",
        ]
        return lines
