"""Camera capture utilities.

``FrameSource`` owns one or two capture devices for the length of a session
and yields one frame per tick. For a stereo rig the two device frames are
joined side by side, left device first. Devices are opened lazily on the
first ``acquire`` with a simple retry policy, and released when the source is
closed or its ``with`` block exits.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple
import cv2
import numpy as np

from camcalib.config import FrameGrabConfig
from camcalib.errors import DeviceTimeout, DeviceUnavailable, FrameSizeMismatch, InvalidRigConfiguration

logger = logging.getLogger(__name__)


def open_capture(index: int, frame_grab: FrameGrabConfig):
    """Open a device with OpenCV's open/read timeout properties set.

    Backends that ignore the properties still open normally; the elapsed
    time of each read is checked in ``FrameSource`` as well.
    """
    params = [
        cv2.CAP_PROP_OPEN_TIMEOUT_MSEC, frame_grab.open_timeout_ms,
        cv2.CAP_PROP_READ_TIMEOUT_MSEC, frame_grab.read_timeout_ms,
    ]
    return cv2.VideoCapture(index, cv2.CAP_ANY, params)


class FrameSource:
    def __init__(
        self,
        rig_cameras: int,
        devices: Sequence[int] = (0, 1),
        frame_grab: Optional[FrameGrabConfig] = None,
        capture_factory: Optional[Callable[[int], object]] = None,
        default_fps: float = 30.0,
    ):
        if rig_cameras not in (1, 2):
            raise InvalidRigConfiguration(f"number of cameras must be 1 or 2, got {rig_cameras}")
        if len(devices) < rig_cameras:
            raise InvalidRigConfiguration(f"{rig_cameras} camera(s) requested but only {len(devices)} device(s) configured")
        self.rig_cameras = rig_cameras
        self.devices = list(devices[:rig_cameras])
        self.frame_grab = frame_grab or FrameGrabConfig()
        self.capture_factory = capture_factory or (lambda index: open_capture(index, self.frame_grab))
        self.default_fps = default_fps
        self.captures: List[object] = []
        self.last_sizes: List[Tuple[int, int]] = []

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def is_open(self) -> bool:
        return len(self.captures) == self.rig_cameras

    def open(self) -> None:
        """Open every device of the rig, retrying each per ``frame_grab``."""
        if self.is_open:
            return
        for index in self.devices:
            self.captures.append(self._open_device(index))
        logger.info("Opened %d camera(s): %s", self.rig_cameras, self.devices)

    def _open_device(self, index: int):
        cap = self.capture_factory(index)
        if cap.isOpened():
            return cap
        cap.release()
        for attempt in range(1, self.frame_grab.attempts + 1):
            time.sleep(self.frame_grab.delay_ms / 1000.0)
            logger.debug("Retrying camera %d (attempt %d/%d)", index, attempt, self.frame_grab.attempts)
            cap = self.capture_factory(index)
            if cap.isOpened():
                return cap
            cap.release()
        self.close()
        raise DeviceUnavailable(f"cannot open camera {index}")

    def close(self) -> None:
        for cap in self.captures:
            cap.release()
        if self.captures:
            logger.debug("Released %d camera(s)", len(self.captures))
        self.captures = []

    def _read(self, cap, index: int) -> Optional[np.ndarray]:
        start = time.monotonic()
        ok, frame = cap.read()
        elapsed_ms = (time.monotonic() - start) * 1000.0
        if self.frame_grab.read_timeout_ms and elapsed_ms > self.frame_grab.read_timeout_ms:
            raise DeviceTimeout(f"camera {index} took {elapsed_ms:.0f} ms to deliver a frame")
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def acquire(self) -> Optional[np.ndarray]:
        """Return the next frame, or ``None`` once any device runs dry.

        Raises ``FrameSizeMismatch`` when the two stereo frames differ in
        size; the frames are never concatenated in that case.
        """
        self.open()
        frames = []
        for cap, index in zip(self.captures, self.devices):
            frame = self._read(cap, index)
            if frame is None:
                logger.info("Camera %d reported end of stream", index)
                return None
            frames.append(frame)

        self.last_sizes = [(f.shape[1], f.shape[0]) for f in frames]
        if len(frames) == 1:
            return frames[0]

        left, right = frames
        if left.shape != right.shape:
            raise FrameSizeMismatch(left.shape, right.shape)
        return cv2.hconcat([left, right])

    def frame_rate(self) -> float:
        """Frame rate reported by the first device, with a fallback."""
        self.open()
        fps = self.captures[0].get(cv2.CAP_PROP_FPS)
        if not fps or fps <= 0:
            logger.warning("Camera %d reports no frame rate, using %.1f", self.devices[0], self.default_fps)
            return self.default_fps
        return float(fps)

    def frame_sizes(self) -> List[Tuple[int, int]]:
        """Per-device ``(width, height)`` of the last acquired tick."""
        return list(self.last_sizes)
