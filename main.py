"""Entry point for the hand-gesture photo capture.

Show 1, then 2, then 3 fingers to take a photo. The capture is written to
``--output`` and the window closes.

Usage:
    pip install -e .
    python main.py --output capture.png
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from hand_capture import CaptureSession, CaptureSettings, CapturedPhoto
from utils.drawing import (
    blank_frame,
    draw_countdown,
    draw_error_banner,
    draw_finger_badge,
    draw_landmarks,
    draw_prompts,
    draw_step_indicator,
)


logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

WINDOW_NAME = "Raise Your Hand to Capture"

# Display window size (fixed regardless of camera resolution)
DISPLAY_WIDTH = 1280
DISPLAY_HEIGHT = 720

INSTRUCTIONS = [
    "Show 1, then 2, then 3 fingers to take a photo.",
    "Tip: face your palm to the camera, use good lighting,",
    "and keep your hand 30-50 cm away.",
]
KEY_HINTS = ["q / Esc: close", "r: retry"]
COUNTDOWN_NOTICE = "Countdown started! You can lower your hand."


def render_preview(session: CaptureSession, frame: Optional[np.ndarray]) -> np.ndarray:
    """Compose the preview the user confirms against: mirrored feed plus overlays."""
    if frame is None:
        canvas = blank_frame(DISPLAY_WIDTH, DISPLAY_HEIGHT)
    else:
        canvas = cv2.resize(frame, (DISPLAY_WIDTH, DISPLAY_HEIGHT), interpolation=cv2.INTER_LINEAR)
        if session.settings.mirror:
            canvas = cv2.flip(canvas, 1)
        canvas = draw_landmarks(canvas, session.landmarks, mirrored=session.settings.mirror)

    if session.camera_error:
        canvas = draw_error_banner(canvas, session.camera_error)
        return draw_prompts(canvas, KEY_HINTS, origin=(20, 80))

    if session.is_loading:
        return draw_prompts(canvas, ["Starting camera..."], origin=(20, 20))

    canvas = draw_countdown(canvas, session.countdown_value if session.is_counting_down else 0)
    canvas = draw_finger_badge(canvas, session.finger_count)
    canvas = draw_step_indicator(canvas, session.current_step)
    if session.is_counting_down:
        return draw_prompts(canvas, [COUNTDOWN_NOTICE] + KEY_HINTS, origin=(20, 20))
    return draw_prompts(canvas, INSTRUCTIONS + KEY_HINTS, origin=(20, 20))


def run(
    camera_index: int = 0,
    output: Path = Path("capture.png"),
    model_path: Optional[str] = None,
    mirror: bool = True,
) -> Optional[Path]:
    saved: List[Path] = []
    running = True

    def on_photo_captured(photo: CapturedPhoto) -> None:
        path = photo.save(output)
        saved.append(path)
        logger.info("Saved capture to %s", path)

    def on_close() -> None:
        nonlocal running
        running = False
        session.set_open(False)

    settings = CaptureSettings(camera_index=camera_index, model_path=model_path, mirror=mirror)
    session = CaptureSession(on_photo_captured, on_close, settings=settings)

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(WINDOW_NAME, DISPLAY_WIDTH, DISPLAY_HEIGHT)

    session.set_open(True)
    try:
        while running:
            frame = session.tick()
            if not running:
                break
            cv2.imshow(WINDOW_NAME, render_preview(session, frame))

            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                logger.info("Capture cancelled")
                on_close()
            elif key == ord("r"):
                logger.info("Restarting capture session")
                session.set_open(True)
    finally:
        session.close()
        cv2.destroyAllWindows()

    return saved[0] if saved else None


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hand-gesture photo capture")
    parser.add_argument("--camera", type=int, default=0, help="Camera device index.")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("capture.png"),
        help="Where to write the captured PNG.",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Path to hand_landmarker.task (downloaded to models/ when omitted).",
    )
    parser.add_argument(
        "--no-mirror",
        dest="mirror",
        action="store_false",
        help="Show and capture the unflipped camera image.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    path = run(args.camera, args.output, args.model, args.mirror)
    if path is None:
        logger.info("No photo captured")


if __name__ == "__main__":
    main()
