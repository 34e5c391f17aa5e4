"""Hand landmark detection powered by MediaPipe Hand Landmarker."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Set
from urllib.request import urlretrieve

import numpy as np

try:
    import cv2
except ImportError as exc:
    raise ImportError("OpenCV (opencv-python) is required for gesture detection") from exc

try:
    from mediapipe import Image as MPImage
    from mediapipe import ImageFormat
    from mediapipe.tasks import python as mp_python
    from mediapipe.tasks.python import vision
except ImportError as exc:
    raise ImportError("MediaPipe is required for gesture detection. Install mediapipe.") from exc

from capture_errors import DetectorInitializationError, FrameAnalysisError
from detector_base import DetectorOptions, ResultCallback
from finger_count import DEFAULT_HANDEDNESS, DetectionFrame


logger = logging.getLogger(__name__)

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/latest/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path("models/hand_landmarker.task")

# The Tasks bundle only ships the full landmark network.
SUPPORTED_MODEL_COMPLEXITY = 1

_model_lock = threading.Lock()
_ready_models: Set[Path] = set()


def ensure_model(model_path: Path | str | None = None, url: str = MODEL_URL) -> Path:
    """Download the MediaPipe model locally if it is absent.

    Each path is resolved once per process. Concurrent callers wait on the
    same lock, so a model is never fetched twice.
    """
    path = Path(model_path) if model_path else DEFAULT_MODEL_PATH
    with _model_lock:
        if path in _ready_models:
            return path
        if not path.exists():
            logger.info("Downloading hand landmarker model to %s", path)
            path.parent.mkdir(parents=True, exist_ok=True)
            partial = path.with_name(path.name + ".part")
            try:
                urlretrieve(url, partial)
            except (OSError, ValueError) as exc:
                if partial.exists():
                    partial.unlink()
                raise DetectorInitializationError(f"could not download {url}: {exc}") from exc
            partial.replace(path)
        _ready_models.add(path)
    return path


def frame_from_result(result: Any, timestamp_ms: int) -> DetectionFrame:
    """Keep the first detected hand of a ``HandLandmarkerResult``."""
    if not result.hand_landmarks:
        return DetectionFrame(None, DEFAULT_HANDEDNESS, timestamp_ms)

    landmarks = result.hand_landmarks[0]
    coords = np.array([[lm.x, lm.y, lm.z] for lm in landmarks], dtype=np.float32)

    handedness = DEFAULT_HANDEDNESS
    if result.handedness and result.handedness[0]:
        handedness = result.handedness[0][0].category_name or DEFAULT_HANDEDNESS

    return DetectionFrame(coords, handedness, timestamp_ms)


class MediaPipeHandDetector:
    """``HandDetector`` backed by ``vision.HandLandmarker`` in live-stream mode."""

    def __init__(self, model_path: Path | str | None = None) -> None:
        self.model_path = model_path
        self.options: Optional[DetectorOptions] = None
        self._landmarker: Optional[vision.HandLandmarker] = None
        self._callback: Optional[ResultCallback] = None
        self._last_timestamp_ms = -1

    def configure(self, options: DetectorOptions) -> None:
        if options.model_complexity != SUPPORTED_MODEL_COMPLEXITY:
            raise DetectorInitializationError(
                f"model complexity {options.model_complexity} is not available"
            )
        self.release()

        model_path = ensure_model(self.model_path)
        base_options = mp_python.BaseOptions(model_asset_path=str(model_path))
        task_options = vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.LIVE_STREAM,
            num_hands=options.max_hands,
            min_hand_detection_confidence=options.min_detection_confidence,
            min_hand_presence_confidence=options.min_detection_confidence,
            min_tracking_confidence=options.min_tracking_confidence,
            result_callback=self._result_callback,
        )
        try:
            self._landmarker = vision.HandLandmarker.create_from_options(task_options)
        except (RuntimeError, ValueError) as exc:
            raise DetectorInitializationError(str(exc)) from exc
        self.options = options
        logger.info("Hand landmarker ready (%s)", model_path)

    def on_result(self, callback: ResultCallback) -> None:
        self._callback = callback

    def submit_frame(self, frame: np.ndarray, timestamp_ms: int) -> int:
        """Queue a BGR frame for analysis. Returns the timestamp actually used.

        Live-stream mode rejects non-increasing timestamps, so they are bumped.
        """
        if self._landmarker is None:
            raise FrameAnalysisError("detector is not configured")
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        try:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            mp_image = MPImage(image_format=ImageFormat.SRGB, data=rgb_frame)
            self._landmarker.detect_async(mp_image, timestamp_ms)
        except (RuntimeError, ValueError, cv2.error) as exc:
            raise FrameAnalysisError(str(exc)) from exc
        return timestamp_ms

    def _result_callback(
        self,
        result: vision.HandLandmarkerResult,
        output_image: MPImage,
        timestamp_ms: int,
    ) -> None:
        callback = self._callback
        if callback is not None:
            callback(frame_from_result(result, timestamp_ms))

    def release(self) -> None:
        landmarker, self._landmarker = self._landmarker, None
        if landmarker is not None:
            landmarker.close()
            logger.info("Hand landmarker released")
