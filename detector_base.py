"""Protocol for hand landmark detectors driven by a capture session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np

from finger_count import DetectionFrame


@dataclass(frozen=True)
class DetectorOptions:
    """Fixed tracking configuration. Single hand only."""

    max_hands: int = 1
    model_complexity: int = 1
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.5


ResultCallback = Callable[[DetectionFrame], None]


class HandDetector(Protocol):
    """Asynchronous landmark detector.

    ``submit_frame`` returns as soon as the frame is queued; results arrive
    later through the callback given to ``on_result``, possibly on another
    thread and not necessarily one per submitted frame.
    """

    def configure(self, options: DetectorOptions) -> None:
        """Load the model and apply ``options``."""
        ...

    def on_result(self, callback: ResultCallback) -> None:
        ...

    def submit_frame(self, frame: np.ndarray, timestamp_ms: int) -> int:
        """Queue a BGR frame for analysis and return the timestamp used."""
        ...

    def release(self) -> None:
        """Free the model. Safe to call more than once."""
        ...


__all__ = ["DetectorOptions", "HandDetector", "ResultCallback"]
