"""Chessboard pattern geometry and corner detection.

Responsibilities:
- Hold the validated pattern geometry (interior corners and square size)
- Wrap OpenCV's chessboard detector with sub-pixel refinement
- Build the planar object-point grid matching the detected corner order

Object points lie on the z=0 plane in the same units as ``square_size``.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
import cv2

from camcalib.errors import InvalidGeometry


@dataclass(frozen=True)
class PatternGeometry:
    columns: int
    rows: int
    square_size: float = 1.0

    def __post_init__(self):
        if self.columns is None or self.rows is None:
            raise InvalidGeometry("pattern width and height are required")
        if int(self.columns) != self.columns or int(self.rows) != self.rows:
            raise InvalidGeometry(f"pattern size must be integral, got {self.columns}x{self.rows}")
        if self.columns <= 0 or self.rows <= 0:
            raise InvalidGeometry(f"pattern size must be positive, got {self.columns}x{self.rows}")
        if not self.square_size > 0:
            raise InvalidGeometry(f"square size must be positive, got {self.square_size}")

    @property
    def size(self) -> Tuple[int, int]:
        """OpenCV pattern size ``(columns, rows)``."""
        return int(self.columns), int(self.rows)

    def object_points(self) -> np.ndarray:
        """Corner positions of the board in its own plane, shape ``(N, 3)``."""
        cols, rows = self.size
        objp = np.zeros((cols * rows, 3), np.float32)
        objp[:, :2] = np.mgrid[0:cols, 0:rows].T.reshape(-1, 2)
        objp *= self.square_size
        return objp

    def as_dict(self) -> dict:
        return {"columns": int(self.columns), "rows": int(self.rows), "square_size": float(self.square_size)}


class ChessboardDetector:
    def __init__(self, geometry: PatternGeometry, subpix_window: int = 11):
        self.geometry = geometry
        self.subpix_window = (subpix_window, subpix_window)
        self.criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.001)
        self.flags = cv2.CALIB_CB_ADAPTIVE_THRESH + cv2.CALIB_CB_NORMALIZE_IMAGE

    def detect(self, image) -> Optional[np.ndarray]:
        """Find and refine the chessboard corners in a BGR or gray image.

        Returns the refined ``(N, 1, 2)`` corner array, or ``None`` when the
        full board is not visible.
        """
        gray = to_gray(image)
        found, corners = cv2.findChessboardCorners(gray, self.geometry.size, self.flags)
        if not found:
            return None
        refined = cv2.cornerSubPix(gray, corners, self.subpix_window, (-1, -1), self.criteria)
        return refined.reshape(-1, 1, 2)


def to_gray(image) -> np.ndarray:
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def image_size(image) -> Tuple[int, int]:
    """``(width, height)`` of an image array."""
    return int(image.shape[1]), int(image.shape[0])
