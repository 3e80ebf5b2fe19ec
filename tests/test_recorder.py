"""
Unit tests for the session recorder.
"""

import os
import tempfile
import unittest
import cv2

from camcalib.camera import FrameSource
from camcalib.config import RecordingConfig
from camcalib.errors import DeviceUnavailable, FrameSizeMismatch
from camcalib.recorder import CancellationToken, SessionRecorder, StopReason, VideoSink

from fakes import CaptureFactory, FakeCapture, FakePreview, FakeSink, frame


def stereo_source(n_frames, fps=15.0):
    left = FakeCapture([frame() for _ in range(n_frames)], fps=fps)
    right = FakeCapture([frame() for _ in range(n_frames)])
    source = FrameSource(2, capture_factory=CaptureFactory({0: left, 1: right}))
    return source, left, right


class TestSessionRecorder(unittest.TestCase):
    """Test the capture loop and its cleanup."""

    def assertCleanedUpOnce(self, sink, preview, *captures):
        self.assertEqual(sink.released, 1)
        self.assertEqual(preview.closed, 1)
        for cap in captures:
            self.assertEqual(cap.released, 1)

    def test_cancel_key_stops_recording(self):
        source, left, right = stereo_source(10)
        sink, preview = FakeSink(), FakePreview(keys=[255, 255, 27])
        result = SessionRecorder(source, "out.avi", True, sink=sink, preview=preview).record()
        self.assertEqual(result.stop_reason, StopReason.CANCEL_KEY)
        self.assertEqual(result.frames, 3)
        self.assertEqual(len(sink.frames), 3)
        self.assertCleanedUpOnce(sink, preview, left, right)

    def test_end_of_stream_stops_recording(self):
        source, left, right = stereo_source(4)
        sink, preview = FakeSink(), FakePreview()
        result = SessionRecorder(source, "out.avi", True, sink=sink, preview=preview).record()
        self.assertEqual(result.stop_reason, StopReason.END_OF_STREAM)
        self.assertEqual(result.frames, 4)
        self.assertEqual(preview.shown, 4)
        self.assertCleanedUpOnce(sink, preview, left, right)

    def test_sink_opened_with_first_frame_geometry(self):
        source, _, _ = stereo_source(2, fps=15.0)
        sink = FakeSink()
        recording = RecordingConfig(fourcc="XVID")
        SessionRecorder(source, "rec.avi", False, recording, sink=sink, preview=FakePreview()).record()
        self.assertEqual(sink.opened_with, ("rec.avi", "XVID", 15.0, (1280, 480), False))

    def test_cancellation_token(self):
        source, left, right = stereo_source(10)
        sink, preview = FakeSink(), FakePreview()
        token = CancellationToken()
        token.cancel()
        result = SessionRecorder(source, "out.avi", sink=sink, preview=preview, token=token).record()
        self.assertEqual(result.stop_reason, StopReason.CANCELLED)
        self.assertEqual(result.frames, 1)
        self.assertCleanedUpOnce(sink, preview, left, right)

    def test_frame_limit(self):
        source, _, _ = stereo_source(10)
        sink, preview = FakeSink(), FakePreview()
        recording = RecordingConfig(max_frames=5)
        result = SessionRecorder(source, "out.avi", recording=recording, sink=sink, preview=preview).record()
        self.assertEqual(result.stop_reason, StopReason.MAX_FRAMES)
        self.assertEqual(result.frames, 5)

    def test_geometry_change_mid_session_cleans_up(self):
        cap = FakeCapture([frame(640, 480), frame(640, 480), frame(320, 240)])
        source = FrameSource(1, capture_factory=CaptureFactory({0: cap}))
        sink, preview = FakeSink(), FakePreview()
        with self.assertRaises(FrameSizeMismatch):
            SessionRecorder(source, "out.avi", sink=sink, preview=preview).record()
        self.assertEqual(len(sink.frames), 2)
        self.assertCleanedUpOnce(sink, preview, cap)

    def test_no_first_frame(self):
        cap = FakeCapture([])
        source = FrameSource(1, capture_factory=CaptureFactory({0: cap}))
        sink, preview = FakeSink(), FakePreview()
        with self.assertRaises(DeviceUnavailable):
            SessionRecorder(source, "out.avi", sink=sink, preview=preview).record()
        self.assertIsNone(sink.opened_with)
        self.assertEqual(preview.opened, 0)
        self.assertEqual(cap.released, 1)


def count_frames(path):
    cap = cv2.VideoCapture(path)
    n = 0
    while cap.read()[0]:
        n += 1
    cap.release()
    return n


class TestVideoSink(unittest.TestCase):
    """Test recording through a real OpenCV writer."""

    def record(self, color):
        cap = FakeCapture([frame(640, 480, 40 * i) for i in range(5)])
        source = FrameSource(1, capture_factory=CaptureFactory({0: cap}))
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "session.avi")
            try:
                result = SessionRecorder(source, path, color, preview=FakePreview()).record()
            except DeviceUnavailable:
                self.skipTest("MJPG writer not available")
            return result, count_frames(path)

    def test_gray_recording_keeps_every_frame(self):
        result, written = self.record(color=False)
        self.assertEqual(result.frames, 5)
        self.assertEqual(written, 5)

    def test_color_recording_keeps_every_frame(self):
        result, written = self.record(color=True)
        self.assertEqual(written, 5)

    def test_gray_sink_converts_bgr(self):
        sink = VideoSink()
        sink.color = False
        sink.writer = writer = _RecordingWriter()
        sink.write(frame(64, 48))
        self.assertEqual(writer.frames[0].shape, (48, 64))


class _RecordingWriter:
    def __init__(self):
        self.frames = []

    def write(self, f):
        self.frames.append(f)


if __name__ == "__main__":
    unittest.main()
