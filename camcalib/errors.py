"""Typed errors raised across the recording and calibration workflow.

Every precondition the tools check (pattern geometry, rig configuration,
device state, frame sizes) surfaces as one of these instead of aborting the
process. The CLI catches ``CamcalibError`` once at the top and turns it into
a diagnostic plus a ``-1`` exit status.
"""


class CamcalibError(Exception):
    """Base class for all errors raised by this package."""


class InvalidArguments(CamcalibError):
    pass


class InvalidGeometry(CamcalibError):
    pass


class InvalidRigConfiguration(CamcalibError):
    pass


class InvalidPath(CamcalibError):
    pass


class DeviceUnavailable(CamcalibError):
    pass


class DeviceTimeout(CamcalibError):
    pass


class FrameSizeMismatch(CamcalibError):
    """Two frames that must share a geometry do not."""

    def __init__(self, expected, actual):
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        super().__init__(f"frame size mismatch: expected {self.expected}, got {self.actual}")


class CalibrationError(CamcalibError):
    pass


class InsufficientFrames(CalibrationError):
    def __init__(self, found: int, required: int):
        self.found = found
        self.required = required
        super().__init__(
            f"only {found} frame(s) with a detected chessboard, at least {required} required"
        )
