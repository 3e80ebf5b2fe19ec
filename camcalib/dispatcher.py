"""Run a calibration on a recorded video and verify the written parameters.

The camera count picks one ``CalibrationStrategy`` up front; the strategy
names both the calibration and the matching reader, so single-camera runs
never meet a stereo reader and the other way round. A run walks strictly
forward through IDLE, CALIBRATING, WRITING, READING, DISPLAYING and DONE.
"""

import logging
import time
from enum import Enum
from typing import Optional

from camcalib.calibration import (
    SingleCalibration,
    SingleCalibrationReader,
    StereoCalibration,
    StereoCalibrationReader,
)
from camcalib.config import SessionConfig
from camcalib.errors import InvalidPath, InvalidRigConfiguration
from camcalib.pattern import PatternGeometry

logger = logging.getLogger(__name__)


class CalibrationStrategy(Enum):
    SINGLE = 1
    STEREO = 2

    @classmethod
    def from_camera_count(cls, number_of_cameras) -> "CalibrationStrategy":
        for strategy in cls:
            if strategy.value == number_of_cameras:
                return strategy
        raise InvalidRigConfiguration(f"number of cameras must be 1 or 2, got {number_of_cameras}")

    @property
    def calibration_class(self):
        return SingleCalibration if self is CalibrationStrategy.SINGLE else StereoCalibration

    @property
    def reader_class(self):
        return SingleCalibrationReader if self is CalibrationStrategy.SINGLE else StereoCalibrationReader


class DispatchState(Enum):
    IDLE = "idle"
    CALIBRATING = "calibrating"
    WRITING = "writing"
    READING = "reading"
    DISPLAYING = "displaying"
    DONE = "done"


class CalibrationDispatcher:
    def __init__(
        self,
        geometry: PatternGeometry,
        params_path: str,
        strategy: CalibrationStrategy,
        config: Optional[SessionConfig] = None,
    ):
        self.geometry = geometry
        self.params_path = params_path
        self.strategy = strategy
        self.config = config or SessionConfig()
        self.state = DispatchState.IDLE

    def _enter(self, state: DispatchState) -> None:
        logger.debug("Calibration state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, video_path: str) -> int:
        if not video_path:
            raise InvalidPath("source video path is empty")
        if not self.params_path:
            raise InvalidPath("output parameters path is empty")

        print(">> Start calibration")
        logger.info("Calibrating %s rig from %s", self.strategy.name.lower(), video_path)

        calibration = self.strategy.calibration_class(self.geometry, self.params_path, self.config.calibration)
        self._enter(DispatchState.CALIBRATING)
        calibration.calibrate_video(video_path)

        self._enter(DispatchState.WRITING)
        calibration.write_params()

        reader = self.strategy.reader_class(self.params_path)
        self._enter(DispatchState.READING)
        reader.read()
        reader.compute_params()

        self._enter(DispatchState.DISPLAYING)
        reader.show()

        self._enter(DispatchState.DONE)
        print(">> Complete")
        self._countdown()
        return 0

    def _countdown(self) -> None:
        for remaining in range(self.config.exit_countdown_s, 0, -1):
            print(f"{remaining}s")
            time.sleep(1)


def run_calibration(
    video_path: str,
    geometry: PatternGeometry,
    params_path: str,
    number_of_cameras: int = 1,
    config: Optional[SessionConfig] = None,
) -> int:
    """Calibrate from ``video_path`` and display the written parameters.

    Returns 0 on success. Invalid input and calibration failures raise a
    ``CamcalibError`` subclass.
    """
    strategy = CalibrationStrategy.from_camera_count(number_of_cameras)
    return CalibrationDispatcher(geometry, params_path, strategy, config).run(video_path)
