"""Stand-ins for capture devices, the video writer and the preview window."""

import numpy as np


def frame(width=640, height=480, value=0):
    return np.full((height, width, 3), value, np.uint8)


class FakeCapture:
    def __init__(self, frames, fps=30.0, opened=True):
        self.frames = list(frames)
        self.fps = fps
        self.opened = opened
        self.released = 0

    def isOpened(self):
        return self.opened

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def get(self, prop):
        return self.fps

    def release(self):
        self.released += 1


class CaptureFactory:
    """Hands out prepared captures by device index and remembers them."""

    def __init__(self, captures):
        self.captures = dict(captures)
        self.opened = []

    def __call__(self, index):
        self.opened.append(index)
        return self.captures[index]


class FakeSink:
    def __init__(self):
        self.opened_with = None
        self.frames = []
        self.released = 0

    def open(self, path, fourcc, fps, size, color):
        self.opened_with = (path, fourcc, fps, size, color)

    def write(self, f):
        self.frames.append(f)

    def release(self):
        self.released += 1


class FakePreview:
    def __init__(self, keys=()):
        self.keys = list(keys)
        self.opened = 0
        self.shown = 0
        self.closed = 0

    def open(self):
        self.opened += 1

    def show(self, f):
        self.shown += 1

    def poll_key(self, timeout_ms):
        if self.keys:
            return self.keys.pop(0)
        return 255

    def close(self):
        self.closed += 1
