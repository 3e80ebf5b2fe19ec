"""Synthetic chessboard views shared by the tests."""

import math
import cv2
import numpy as np

SQUARE_PX = 40
FOCAL = 800.0
IMAGE_SIZE = (640, 480)


def render_chessboard(columns: int, rows: int, square_px: int = SQUARE_PX) -> np.ndarray:
    """Gray chessboard with ``columns x rows`` interior corners and a white margin."""
    squares_x, squares_y = columns + 1, rows + 1
    board = np.full(((squares_y + 2) * square_px, (squares_x + 2) * square_px), 255, np.uint8)
    for j in range(squares_y):
        for i in range(squares_x):
            if (i + j) % 2 == 0:
                y0, x0 = (j + 1) * square_px, (i + 1) * square_px
                board[y0:y0 + square_px, x0:x0 + square_px] = 0
    return board


def rotation(ax_deg: float, ay_deg: float) -> np.ndarray:
    ax, ay = math.radians(ax_deg), math.radians(ay_deg)
    Rx = np.array([[1, 0, 0], [0, math.cos(ax), -math.sin(ax)], [0, math.sin(ax), math.cos(ax)]])
    Ry = np.array([[math.cos(ay), 0, math.sin(ay)], [0, 1, 0], [-math.sin(ay), 0, math.cos(ay)]])
    return Rx @ Ry


def camera_matrix() -> np.ndarray:
    return np.array([[FOCAL, 0, IMAGE_SIZE[0] / 2], [0, FOCAL, IMAGE_SIZE[1] / 2], [0, 0, 1]])


def project_board(board: np.ndarray, ax_deg: float, ay_deg: float, distance: float = 15.0,
                  camera_offset_x: float = 0.0) -> np.ndarray:
    """Render the board seen by a pinhole camera, one square = one unit.

    ``camera_offset_x`` shifts the camera along its x axis, which is how the
    right camera of a stereo pair sees the same board.
    """
    height, width = board.shape
    centre = np.array([width / SQUARE_PX / 2.0, height / SQUARE_PX / 2.0, 0.0])
    R = rotation(ax_deg, ay_deg)
    t = -R @ centre + np.array([-camera_offset_x, 0.0, distance])
    to_plane = np.diag([1.0 / SQUARE_PX, 1.0 / SQUARE_PX, 1.0])
    H = camera_matrix() @ np.column_stack([R[:, 0], R[:, 1], t]) @ to_plane
    view = cv2.warpPerspective(board, H, IMAGE_SIZE, flags=cv2.INTER_LINEAR, borderValue=255)
    return cv2.cvtColor(view, cv2.COLOR_GRAY2BGR)


VIEW_ANGLES = [
    (0, 0), (15, 0), (-15, 0), (0, 15), (0, -15), (10, 10),
    (-10, 10), (10, -10), (-10, -10), (20, 5), (5, -20), (-20, -5),
]
