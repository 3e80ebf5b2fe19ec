"""Session configuration loading and schema types.

This module converts the optional YAML session file into typed dataclasses so
the capture, recording and calibration code can rely on clear structures.
Every field has a default, so running the tools without a config file works.
If you add new settings, extend the dataclasses here and adjust the loader.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import yaml


@dataclass
class FrameGrabConfig:
    attempts: int = 3
    delay_ms: int = 400
    open_timeout_ms: int = 5000
    read_timeout_ms: int = 5000


@dataclass
class RecordingConfig:
    fourcc: str = "MJPG"
    window_name: str = "Stereo recording"
    cancel_key: int = 27  # Esc
    poll_ms: int = 1
    default_fps: float = 30.0
    max_frames: int = 0  # 0 = until cancelled or end of stream


@dataclass
class CalibrationConfig:
    frame_step: int = 5
    min_frames: int = 10
    max_frames: int = 0  # 0 = use every accepted frame
    subpix_window: int = 11


@dataclass
class SessionConfig:
    devices: List[int] = field(default_factory=lambda: [0, 1])
    frame_grab: FrameGrabConfig = field(default_factory=FrameGrabConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    exit_countdown_s: int = 0
    log_file: Optional[str] = None

    @staticmethod
    def load(path: str) -> "SessionConfig":
        """Load YAML config from ``path`` into a ``SessionConfig`` instance.

        Missing sections fall back to their defaults. Unknown keys inside a
        section raise ``TypeError`` from the dataclass constructor, a file
        that is not a mapping raises ``ValueError``.
        """
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping at the top level, got {type(raw).__name__}")

        return SessionConfig(
            devices=[int(d) for d in raw.get("devices", [0, 1])],
            frame_grab=FrameGrabConfig(**raw.get("frame_grab", {})),
            recording=RecordingConfig(**raw.get("recording", {})),
            calibration=CalibrationConfig(**raw.get("calibration", {})),
            exit_countdown_s=int(raw.get("exit_countdown_s", 0)),
            log_file=raw.get("log_file"),
        )
