"""Errors raised while acquiring the camera, loading the detector, or analysing frames."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for capture session failures.

    ``user_message`` is the text shown in the preview window when the error
    ends a session.
    """

    prefix = "Capture failed"

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason)
        self.reason = reason

    @property
    def user_message(self) -> str:
        if not self.reason:
            return self.prefix
        return f"{self.prefix}: {self.reason}"


class CameraPermissionError(CaptureError):
    """Camera access was denied or no capture device exists."""

    prefix = "Camera access denied or unavailable"


class DetectorInitializationError(CaptureError):
    """The hand landmark model could not be downloaded or constructed."""

    prefix = "Initialization failed"


class PlaybackError(CaptureError):
    """The stream opened but never delivered a frame."""

    prefix = "Failed to play video"


class StreamTimeoutError(CaptureError):
    """The stream did not report its frame size within the ready timeout."""

    prefix = "Video failed to load"

    @property
    def user_message(self) -> str:
        return "Video failed to load. Please try again."


class FrameAnalysisError(CaptureError):
    """A single frame could not be analysed. Never fatal."""

    prefix = "Frame analysis failed"
