"""Small geometry helpers for reading calibration results.

Angles are returned in degrees. Lengths keep the units of the calibration
pattern's square size.
"""

import numpy as np
import math


def rotation_angle_deg(R: np.ndarray) -> float:
    """Angle of the axis-angle form of a 3x3 rotation matrix."""
    R = np.asarray(R, dtype=np.float64)
    angle_rad = math.acos(max(-1.0, min(1.0, (np.trace(R) - 1) / 2)))
    return math.degrees(angle_rad)


def baseline_length(T: np.ndarray) -> float:
    """Distance between the two camera centres given the stereo translation."""
    return float(np.linalg.norm(np.asarray(T, dtype=np.float64).reshape(-1)))


def field_of_view_deg(camera_matrix: np.ndarray, image_size) -> tuple:
    """Horizontal and vertical field of view of a pinhole camera."""
    K = np.asarray(camera_matrix, dtype=np.float64)
    width, height = image_size
    fov_x = 2.0 * math.degrees(math.atan2(width / 2.0, K[0, 0]))
    fov_y = 2.0 * math.degrees(math.atan2(height / 2.0, K[1, 1]))
    return fov_x, fov_y
