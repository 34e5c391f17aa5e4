"""Exclusive webcam stream ownership for a capture session."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

try:
    import cv2
except ImportError as exc:
    raise ImportError("OpenCV (opencv-python) is required for camera capture") from exc

from capture_errors import CameraPermissionError, PlaybackError


logger = logging.getLogger(__name__)

CAPTURE_WIDTH = 1280
CAPTURE_HEIGHT = 720


class CameraController:
    """Open, read and release one ``cv2.VideoCapture`` stream (video only)."""

    def __init__(
        self,
        camera_index: int = 0,
        width: int = CAPTURE_WIDTH,
        height: int = CAPTURE_HEIGHT,
        backend: int = cv2.CAP_ANY,
    ) -> None:
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.backend = backend
        self._capture: Optional[cv2.VideoCapture] = None
        self._playing = False

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def frame_size(self) -> Tuple[int, int]:
        if self._capture is None:
            return (0, 0)
        return (
            int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def open(self) -> None:
        if self._capture is not None:
            return
        try:
            capture = cv2.VideoCapture(self.camera_index, self.backend)
        except cv2.error as exc:
            raise CameraPermissionError(str(exc)) from exc
        if not capture.isOpened():
            capture.release()
            raise CameraPermissionError(f"unable to open camera {self.camera_index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture

        actual_width, actual_height = self.frame_size
        logger.info(
            "Camera %d opened at %dx%d (requested %dx%d)",
            self.camera_index,
            actual_width,
            actual_height,
            self.width,
            self.height,
        )

    def has_metadata(self) -> bool:
        """True once the stream reports a nonzero frame size."""
        width, height = self.frame_size
        return width > 0 and height > 0

    def play(self) -> np.ndarray:
        """Start delivering frames and return the first one."""
        if self._capture is None:
            raise PlaybackError("camera is not open")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise PlaybackError("camera did not deliver a frame")
        self._playing = True
        return frame

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None or not self._playing:
            return None
        ok, frame = self._capture.read()
        if not ok:
            return None
        return frame

    def release(self) -> None:
        capture, self._capture = self._capture, None
        self._playing = False
        if capture is not None:
            capture.release()
            logger.info("Camera %d released", self.camera_index)
