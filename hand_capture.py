"""Hand-gesture photo capture session.

A session owns one camera stream and one landmark detector from the moment
it is opened until it is closed. The host calls ``tick`` once per display
frame; each tick drains detector results into the finger sequence, fires due
timers, and feeds the next camera frame to the detector. When the user has
shown 1, 2 and then held 3 fingers through the countdown, the mirrored frame
is PNG-encoded and handed to ``on_photo_captured``, followed by ``on_close``.
"""

from __future__ import annotations

import base64
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Deque, Iterable, Optional

import cv2
import numpy as np

from camera_controller import CAPTURE_HEIGHT, CAPTURE_WIDTH, CameraController
from capture_errors import (
    CaptureError,
    DetectorInitializationError,
    FrameAnalysisError,
    StreamTimeoutError,
)
from capture_sequence import (
    CancelTimer,
    CapturePhoto,
    Effect,
    FingerObserved,
    SequenceState,
    SequenceTiming,
    StartTimer,
    TimerFired,
    advance,
)
from detector_base import DetectorOptions, HandDetector
from finger_count import DetectionFrame, observe_frame
from timers import TimerQueue


logger = logging.getLogger(__name__)

# Tunable constants
OUTPUT_WIDTH = 640
OUTPUT_HEIGHT = 360
READY_TIMEOUT_SECONDS = 5.0
MAX_PENDING_RESULTS = 32


@dataclass(frozen=True)
class CaptureSettings:
    camera_index: int = 0
    capture_width: int = CAPTURE_WIDTH
    capture_height: int = CAPTURE_HEIGHT
    output_width: int = OUTPUT_WIDTH
    output_height: int = OUTPUT_HEIGHT
    ready_timeout: float = READY_TIMEOUT_SECONDS
    mirror: bool = True
    model_path: Optional[str] = None
    timing: SequenceTiming = field(default_factory=SequenceTiming)
    detector: DetectorOptions = field(default_factory=DetectorOptions)


@dataclass(frozen=True)
class CapturedPhoto:
    """PNG-encoded still handed to the caller. The session keeps no copy."""

    data: bytes
    width: int
    height: int
    media_type: str = "image/png"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    def save(self, path: Path | str) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.data)
        return target


class SessionToken:
    """Liveness flag shared by every asynchronous continuation of one session."""

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def cancel(self) -> None:
        self._alive = False


def encode_photo(
    frame: np.ndarray, width: int, height: int, mirror: bool = True
) -> CapturedPhoto:
    """Mirror (to match the preview), resize to the output size and PNG-encode."""
    image = cv2.flip(frame, 1) if mirror else frame
    if image.shape[1] != width or image.shape[0] != height:
        image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise CaptureError("PNG encoding failed")
    return CapturedPhoto(buffer.tobytes(), width, height)


def default_camera_factory(settings: CaptureSettings) -> CameraController:
    return CameraController(
        settings.camera_index, settings.capture_width, settings.capture_height
    )


def default_detector_factory(settings: CaptureSettings) -> HandDetector:
    # MediaPipe is imported on first use so the rest of the session can run without it.
    from gesture_detector import MediaPipeHandDetector

    return MediaPipeHandDetector(settings.model_path)


class CaptureSession:
    WAITING = "waiting"
    LIVE = "live"
    STOPPED = "stopped"

    def __init__(
        self,
        on_photo_captured: Callable[[CapturedPhoto], None],
        on_close: Callable[[], None],
        *,
        settings: Optional[CaptureSettings] = None,
        camera_factory: Callable[[CaptureSettings], CameraController] = default_camera_factory,
        detector_factory: Callable[[CaptureSettings], HandDetector] = default_detector_factory,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.on_photo_captured = on_photo_captured
        self.on_close = on_close
        self.settings = settings or CaptureSettings()
        self._camera_factory = camera_factory
        self._detector_factory = detector_factory
        self._clock = clock

        self.is_open = False
        self.is_loading = False
        self.camera_error: Optional[str] = None
        self.landmarks: Optional[np.ndarray] = None
        self.last_frame: Optional[np.ndarray] = None

        self._sequence = SequenceState()
        self._timers = TimerQueue(clock)
        self._token = SessionToken()
        self._token.cancel()
        self._camera: Optional[CameraController] = None
        self._detector: Optional[HandDetector] = None
        self._loop_state = self.STOPPED
        self._opened_at = 0.0
        self._completed = False
        self._results: Deque[DetectionFrame] = deque()
        self._results_lock = threading.Lock()

    # -- observable state ------------------------------------------------

    @property
    def finger_count(self) -> Optional[int]:
        return self._sequence.finger_count

    @property
    def current_step(self) -> int:
        return int(self._sequence.step)

    @property
    def is_counting_down(self) -> bool:
        return self._sequence.is_counting_down

    @property
    def countdown_value(self) -> int:
        return self._sequence.countdown

    @property
    def sequence(self) -> SequenceState:
        return self._sequence

    @property
    def is_live(self) -> bool:
        return self._loop_state == self.LIVE

    # -- inbound contract --------------------------------------------------

    def set_open(self, is_open: bool) -> None:
        """Open (or re-open) the session, or close it."""
        if is_open:
            self._teardown()
            self._start()
        else:
            self._teardown()

    def close(self) -> None:
        self._teardown()

    def __enter__(self) -> "CaptureSession":
        self.set_open(True)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- lifecycle -----------------------------------------------------------

    def _start(self) -> None:
        token = SessionToken()
        self._token = token
        self.is_open = True
        self.is_loading = True
        self.camera_error = None
        self._completed = False
        self._sequence = SequenceState()

        try:
            detector = self._load_detector()
            detector.on_result(lambda frame: self._queue_result(token, frame))

            camera = self._camera_factory(self.settings)
            self._camera = camera
            camera.open()
        except CaptureError as exc:
            self._fail(exc)
            return

        self._opened_at = self._clock()
        self._loop_state = self.WAITING
        logger.info("Capture session opened, waiting for camera stream")

    def _load_detector(self) -> HandDetector:
        """Create and configure the detector. Any load failure becomes a session error."""
        try:
            detector = self._detector_factory(self.settings)
            self._detector = detector
            detector.configure(self.settings.detector)
        except CaptureError:
            raise
        except Exception as exc:
            logger.debug("Hand detector failed to load", exc_info=True)
            raise DetectorInitializationError(str(exc) or type(exc).__name__) from exc
        return detector

    def _teardown(self) -> None:
        # Order matters: stale callbacks must become no-ops before anything is released.
        with self._results_lock:
            self._token.cancel()
            self._results.clear()
        was_open = self.is_open
        self.is_open = False
        self.is_loading = False
        self._timers.clear()
        self._sequence = SequenceState()
        self._loop_state = self.STOPPED
        self.landmarks = None

        detector, self._detector = self._detector, None
        camera, self._camera = self._camera, None
        if detector is not None:
            try:
                detector.release()
            except Exception:
                logger.exception("Failed to release hand detector")
        self.last_frame = None
        if camera is not None:
            try:
                camera.release()
            except Exception:
                logger.exception("Failed to release camera")
        if was_open:
            logger.info("Capture session closed")

    def _fail(self, error: CaptureError) -> None:
        logger.error("Capture session failed: %s", error.user_message)
        self.camera_error = error.user_message
        self.is_loading = False
        self._loop_state = self.STOPPED

    # -- detector callback -------------------------------------------------

    def _queue_result(self, token: SessionToken, frame: DetectionFrame) -> None:
        # May run on the detector's own thread; results are consumed by tick().
        with self._results_lock:
            if not token.alive:
                return
            results = self._results
            if results and observe_frame(results[-1]) == observe_frame(frame):
                # Same count as the previous result: keep only the newer landmarks.
                results[-1] = frame
                return
            if len(results) >= MAX_PENDING_RESULTS:
                dropped = results.popleft()
                logger.warning(
                    "Detection queue full, dropping result from %d ms", dropped.timestamp_ms
                )
            results.append(frame)

    def _drain_results(self) -> Iterable[DetectionFrame]:
        with self._results_lock:
            pending = list(self._results)
            self._results.clear()
        return pending

    # -- render loop -------------------------------------------------------

    def tick(self) -> Optional[np.ndarray]:
        """Run one render-loop iteration. Returns the latest camera frame, if any."""
        token = self._token
        if not token.alive:
            return None

        for frame in self._drain_results():
            self._handle_detection(frame)
            if not token.alive:
                return None

        for name in self._timers.pop_due():
            self._dispatch(TimerFired(name))
            if not token.alive:
                return None

        if self._loop_state == self.WAITING:
            self._wait_for_stream()
        elif self._loop_state == self.LIVE:
            self._pump_frame()
        return self.last_frame

    def _wait_for_stream(self) -> None:
        camera = self._camera
        if camera is None:
            return
        if camera.has_metadata():
            try:
                self.last_frame = camera.play()
            except CaptureError as exc:
                self._fail(exc)
                return
            self._loop_state = self.LIVE
            self.is_loading = False
            logger.info("Camera stream live")
            self._submit(self.last_frame)
        elif self._clock() - self._opened_at >= self.settings.ready_timeout:
            if self.camera_error is None:
                self._fail(StreamTimeoutError())

    def _pump_frame(self) -> None:
        camera = self._camera
        if camera is None:
            return
        frame = camera.read()
        if frame is None:
            return
        self.last_frame = frame
        self._submit(frame)

    def _submit(self, frame: np.ndarray) -> None:
        detector = self._detector
        if detector is None:
            return
        try:
            detector.submit_frame(frame, int(self._clock() * 1000))
        except FrameAnalysisError as exc:
            logger.debug("Skipping frame: %s", exc)

    # -- state machine -----------------------------------------------------

    def _handle_detection(self, frame: DetectionFrame) -> None:
        self.landmarks = frame.landmarks
        if self.is_loading or self.camera_error is not None:
            return
        self._dispatch(FingerObserved(observe_frame(frame)))

    def _dispatch(self, event: object) -> None:
        previous = self._sequence
        transition = advance(previous, event, self.settings.timing)
        self._sequence = transition.state
        if transition.state.step != previous.step:
            logger.info("Gesture step %d -> %d", previous.step, transition.state.step)
        self._apply(transition.effects)

    def _apply(self, effects: Iterable[Effect]) -> None:
        token = self._token
        for effect in effects:
            if not token.alive:
                return
            if isinstance(effect, StartTimer):
                self._timers.schedule(effect.name, effect.delay)
            elif isinstance(effect, CancelTimer):
                self._timers.cancel(effect.name)
            elif isinstance(effect, CapturePhoto):
                self._capture_and_complete()

    def _capture_and_complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        frame = self.last_frame
        if frame is None:
            logger.warning("Countdown finished without a camera frame")
            return
        settings = self.settings
        try:
            photo = encode_photo(
                frame, settings.output_width, settings.output_height, settings.mirror
            )
        except CaptureError as exc:
            self._fail(exc)
            return
        logger.info("Photo captured (%dx%d, %d bytes)", photo.width, photo.height, len(photo.data))
        self.on_photo_captured(photo)
        self.on_close()
