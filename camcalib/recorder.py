"""Record a calibration session from live cameras to a video file.

The recorder runs a blocking loop: acquire a frame, append it to the video
sink, show it in the preview window, poll the keyboard. It stops on the
cancel key, on a cancellation token, on an optional frame limit, or when
the frame source runs dry. The sink, the preview window and the cameras are
released exactly once on every exit path, errors included.
"""

import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import cv2
import numpy as np

from camcalib.camera import FrameSource
from camcalib.config import RecordingConfig
from camcalib.errors import DeviceUnavailable, FrameSizeMismatch

logger = logging.getLogger(__name__)


class StopReason(Enum):
    CANCEL_KEY = "cancel key"
    CANCELLED = "cancelled"
    END_OF_STREAM = "end of stream"
    MAX_FRAMES = "frame limit"


@dataclass
class RecordingResult:
    path: str
    frames: int
    stop_reason: StopReason
    frame_size: Tuple[int, int]
    fps: float


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class VideoSink:
    """Thin wrapper around ``cv2.VideoWriter``."""

    def __init__(self):
        self.writer = None
        self.color = True

    def open(self, path: str, fourcc: str, fps: float, size: Tuple[int, int], color: bool) -> None:
        code = cv2.VideoWriter_fourcc(*fourcc)
        self.color = color
        self.writer = cv2.VideoWriter(path, code, fps, size, color)
        if not self.writer.isOpened():
            self.writer = None
            raise DeviceUnavailable(f"cannot open video writer for {path} ({fourcc}, {size[0]}x{size[1]})")

    def write(self, frame: np.ndarray) -> None:
        # a gray writer drops 3-channel frames without an error
        if not self.color and frame.ndim == 3:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        self.writer.write(frame)

    def release(self) -> None:
        if self.writer is not None:
            self.writer.release()
            self.writer = None


class PreviewWindow:
    """Live preview of the frames being recorded."""

    def __init__(self, name: str):
        self.name = name

    def open(self) -> None:
        cv2.namedWindow(self.name, cv2.WINDOW_FREERATIO)

    def show(self, frame: np.ndarray) -> None:
        cv2.imshow(self.name, frame)

    def poll_key(self, timeout_ms: int) -> int:
        return cv2.waitKey(timeout_ms) & 0xFF

    def close(self) -> None:
        cv2.destroyAllWindows()


def info():
    print("Press Esc to start calibration")


class SessionRecorder:
    def __init__(
        self,
        source: FrameSource,
        writer_path: str,
        color: bool = True,
        recording: Optional[RecordingConfig] = None,
        sink: Optional[VideoSink] = None,
        preview: Optional[PreviewWindow] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.source = source
        self.writer_path = writer_path
        self.color = color
        self.recording = recording or RecordingConfig()
        self.sink = sink or VideoSink()
        self.preview = preview or PreviewWindow(self.recording.window_name)
        self.token = token or CancellationToken()

    def record(self) -> RecordingResult:
        """Run the capture loop and return what was recorded.

        The sink geometry and frame rate come from the first frame and the
        first device; later frames must match that geometry.
        """
        with contextlib.ExitStack() as stack:
            stack.enter_context(self.source)

            frame = self.source.acquire()
            if frame is None:
                raise DeviceUnavailable("cameras delivered no frame")
            for i, size in enumerate(self.source.frame_sizes(), start=1):
                logger.info("Frame size cap%d: %dx%d", i, size[0], size[1])

            shape = frame.shape
            size = (frame.shape[1], frame.shape[0])
            fps = self.source.frame_rate()
            logger.info("Recording to %s at %.1f fps, %dx%d", self.writer_path, fps, size[0], size[1])

            self.sink.open(self.writer_path, self.recording.fourcc, fps, size, self.color)
            stack.callback(self.sink.release)
            self.preview.open()
            stack.callback(self.preview.close)

            info()
            frames = 0
            while True:
                if frame.shape != shape:
                    raise FrameSizeMismatch(shape, frame.shape)
                self.sink.write(frame)
                frames += 1
                self.preview.show(frame)

                key = self.preview.poll_key(self.recording.poll_ms)
                if key == self.recording.cancel_key:
                    reason = StopReason.CANCEL_KEY
                    break
                if self.token.cancelled:
                    reason = StopReason.CANCELLED
                    break
                if self.recording.max_frames and frames >= self.recording.max_frames:
                    reason = StopReason.MAX_FRAMES
                    break

                frame = self.source.acquire()
                if frame is None:
                    reason = StopReason.END_OF_STREAM
                    break

        logger.info("Recording stopped (%s) after %d frame(s)", reason.value, frames)
        return RecordingResult(self.writer_path, frames, reason, size, fps)
