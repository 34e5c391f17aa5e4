"""Shared doubles for driving a capture session without a camera or model."""

from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np
import pytest

from capture_errors import CameraPermissionError, DetectorInitializationError, FrameAnalysisError, PlaybackError
from finger_count import FINGER_JOINTS, DetectionFrame

FINGERS_FOR_COUNT = {
    0: (),
    1: ("index",),
    2: ("index", "middle"),
    3: ("index", "middle", "ring"),
    4: ("index", "middle", "ring", "pinky"),
    5: ("thumb", "index", "middle", "ring", "pinky"),
}


def make_hand(fingers: Iterable[str] = (), handedness: str = "Right") -> np.ndarray:
    """Upright hand with the named digits extended, in normalized image coordinates."""
    extended = set(fingers)
    coords = np.zeros((21, 3), dtype=np.float32)
    coords[0] = (0.5, 0.8, 0.0)

    columns = {"index": 0.45, "middle": 0.5, "ring": 0.55, "pinky": 0.6}
    for name, x in columns.items():
        mcp, pip, dip, tip = FINGER_JOINTS[name]
        coords[mcp] = (x, 0.6, 0.0)
        coords[pip] = (x, 0.5, 0.0)
        coords[dip] = (x, 0.45, 0.0)
        coords[tip] = (x, 0.4 if name in extended else 0.58, 0.0)

    # A right hand's thumb points toward smaller x, a left hand's toward larger x.
    outward = -1.0 if handedness == "Right" else 1.0
    coords[1] = (0.42, 0.7, 0.0)
    coords[2] = (0.40, 0.65, 0.0)
    coords[3] = (0.40 + outward * 0.03, 0.62, 0.0)
    if "thumb" in extended:
        coords[4] = (0.40 + outward * 0.08, 0.6, 0.0)
    else:
        coords[4] = (0.40 - outward * 0.05, 0.6, 0.0)
    return coords


def frame_for(count: Optional[int], handedness: str = "Right") -> DetectionFrame:
    if count is None:
        return DetectionFrame(None, handedness)
    return DetectionFrame(make_hand(FINGERS_FOR_COUNT[count], handedness), handedness)


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCamera:
    def __init__(
        self,
        events: Optional[List[str]] = None,
        fail_open: bool = False,
        fail_play: bool = False,
        metadata_ready: bool = True,
    ) -> None:
        self.events = events if events is not None else []
        self.fail_open = fail_open
        self.fail_play = fail_play
        self.metadata_ready = metadata_ready
        self.opened = False
        self.playing = False
        self.release_calls = 0
        self.reads = 0

    def open(self) -> None:
        if self.fail_open:
            raise CameraPermissionError("Permission denied")
        self.opened = True
        self.events.append("camera.open")

    def has_metadata(self) -> bool:
        return self.opened and self.metadata_ready

    def play(self) -> np.ndarray:
        if self.fail_play:
            raise PlaybackError("device busy")
        self.playing = True
        return self._frame()

    def read(self) -> Optional[np.ndarray]:
        if not self.playing:
            return None
        self.reads += 1
        return self._frame()

    def release(self) -> None:
        self.release_calls += 1
        self.opened = False
        self.playing = False
        self.events.append("camera.release")

    @staticmethod
    def _frame() -> np.ndarray:
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        # Left half brighter so mirroring is observable.
        frame[:, :640] = 200
        return frame


class FakeDetector:
    def __init__(self, events: Optional[List[str]] = None, fail_configure: bool = False) -> None:
        self.events = events if events is not None else []
        self.fail_configure = fail_configure
        self.options = None
        self.callback = None
        self.submissions: List[int] = []
        self.fail_next_submissions = 0
        self.release_calls = 0

    def configure(self, options) -> None:
        if self.fail_configure:
            raise DetectorInitializationError("model download failed")
        self.options = options
        self.events.append("detector.configure")

    def on_result(self, callback) -> None:
        self.callback = callback

    def submit_frame(self, frame: np.ndarray, timestamp_ms: int) -> int:
        if self.fail_next_submissions:
            self.fail_next_submissions -= 1
            raise FrameAnalysisError("graph error")
        self.submissions.append(timestamp_ms)
        return timestamp_ms

    def emit(self, frame: DetectionFrame) -> None:
        if self.callback is not None:
            self.callback(frame)

    def release(self) -> None:
        self.release_calls += 1
        self.events.append("detector.release")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
