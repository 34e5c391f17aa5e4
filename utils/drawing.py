# utils/drawing.py
"""Helper functions for drawing the capture preview: hand skeleton, progress and prompts."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

HAND_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    (0, 1), (1, 2), (2, 3), (3, 4),  # Thumb
    (0, 5), (5, 6), (6, 7), (7, 8),  # Index
    (0, 9), (9, 10), (10, 11), (11, 12),  # Middle
    (0, 13), (13, 14), (14, 15), (15, 16),  # Ring
    (0, 17), (17, 18), (18, 19), (19, 20),  # Pinky
    (5, 9), (9, 13), (13, 17),  # Palm connections
)

# BGR
CONNECTION_COLOR = (0, 255, 0)
JOINT_COLOR = (0, 0, 255)
PANEL_COLOR = (30, 30, 30)
TEXT_COLOR = (235, 235, 235)
ERROR_COLOR = (40, 40, 200)
STEP_FILLED_COLOR = (60, 180, 75)
STEP_OUTLINE_COLOR = (150, 150, 150)


# Small utility
def _rounded_rect(img, top_left, bottom_right, color, radius=12, thickness=-1, alpha=1.0):
    x1, y1 = top_left
    x2, y2 = bottom_right
    overlay = img.copy()
    w = x2 - x1
    h = y2 - y1
    if w <= 0 or h <= 0:
        return img
    radius = max(0, min(radius, w // 2, h // 2))
    # draw filled rect with rounded corners using circles & rects
    cv2.rectangle(overlay, (x1 + radius, y1), (x2 - radius, y2), color, thickness)
    cv2.rectangle(overlay, (x1, y1 + radius), (x2, y2 - radius), color, thickness)
    cv2.circle(overlay, (x1 + radius, y1 + radius), radius, color, thickness)
    cv2.circle(overlay, (x2 - radius, y1 + radius), radius, color, thickness)
    cv2.circle(overlay, (x1 + radius, y2 - radius), radius, color, thickness)
    cv2.circle(overlay, (x2 - radius, y2 - radius), radius, color, thickness)
    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)
    return img


def draw_landmarks(
    frame: np.ndarray,
    landmarks: Optional[np.ndarray],
    mirrored: bool = False,
) -> np.ndarray:
    """Render a single hand skeleton from normalized (x, y[, z]) landmarks.

    Args:
        frame: The frame to draw on
        landmarks: Array of shape (21, 2+) or None when no hand is tracked
        mirrored: If True, mirror the x coordinates horizontally
    """
    output = frame.copy()
    if landmarks is None or len(landmarks) == 0:
        return output
    height, width = output.shape[:2]

    if mirrored:
        points = [(int((1.0 - lm[0]) * width), int(lm[1] * height)) for lm in landmarks]
    else:
        points = [(int(lm[0] * width), int(lm[1] * height)) for lm in landmarks]

    for start, end in HAND_CONNECTIONS:
        if start < len(points) and end < len(points):
            cv2.line(output, points[start], points[end], CONNECTION_COLOR, 2, lineType=cv2.LINE_AA)

    for point in points:
        cv2.circle(output, point, 3, JOINT_COLOR, -1, lineType=cv2.LINE_AA)

    return output


def draw_countdown(frame: np.ndarray, seconds: int) -> np.ndarray:
    """Dim the frame and draw the countdown number at its center."""
    output = frame.copy()
    if seconds <= 0:
        return output
    height, width = output.shape[:2]

    shade = np.zeros_like(output)
    cv2.addWeighted(shade, 0.5, output, 0.5, 0, output)

    text = str(seconds)
    font_scale = min(width, height) / 150
    text_size, _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_DUPLEX, font_scale, 6)
    origin = (
        (width - text_size[0]) // 2,
        (height + text_size[1]) // 2,
    )
    cv2.putText(
        output,
        text,
        origin,
        cv2.FONT_HERSHEY_DUPLEX,
        font_scale,
        (255, 255, 255),
        6,
        lineType=cv2.LINE_AA,
    )
    return output


def draw_finger_badge(frame: np.ndarray, finger_count: Optional[int]) -> np.ndarray:
    """Top-right badge with the raw finger count, '-' when no hand is visible."""
    output = frame.copy()
    height, width = output.shape[:2]
    text = f"Fingers: {finger_count if finger_count is not None else '-'}"
    font_scale = 0.6
    text_size, _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 2)
    padding = 8
    x2 = width - 10
    x1 = x2 - text_size[0] - padding * 2
    y1 = 10
    y2 = y1 + text_size[1] + padding * 2
    _rounded_rect(output, (x1, y1), (x2, y2), PANEL_COLOR, radius=6, alpha=0.6)
    cv2.putText(
        output,
        text,
        (x1 + padding, y2 - padding),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        TEXT_COLOR,
        2,
        lineType=cv2.LINE_AA,
    )
    return output


def draw_step_indicator(
    frame: np.ndarray,
    current_step: int,
    steps: int = 3,
    box_size: int = 40,
    spacing: int = 28,
) -> np.ndarray:
    """Draw the 1 -> 2 -> 3 progress boxes along the bottom, filled up to ``current_step``."""
    output = frame.copy()
    height, width = output.shape[:2]
    total_w = steps * box_size + (steps - 1) * spacing
    x = (width - total_w) // 2
    y = height - box_size - 16

    for number in range(1, steps + 1):
        filled = number <= current_step
        if filled:
            _rounded_rect(output, (x, y), (x + box_size, y + box_size), STEP_FILLED_COLOR, radius=6, alpha=0.85)
        else:
            cv2.rectangle(output, (x, y), (x + box_size, y + box_size), STEP_OUTLINE_COLOR, 2, lineType=cv2.LINE_AA)
        label = str(number)
        text_size, _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.8, 2)
        cv2.putText(
            output,
            label,
            (x + (box_size - text_size[0]) // 2, y + (box_size + text_size[1]) // 2),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.8,
            (255, 255, 255),
            2,
            lineType=cv2.LINE_AA,
        )
        if number < steps:
            arrow_y = y + box_size // 2
            cv2.arrowedLine(
                output,
                (x + box_size + 6, arrow_y),
                (x + box_size + spacing - 6, arrow_y),
                TEXT_COLOR,
                2,
                tipLength=0.4,
            )
        x += box_size + spacing
    return output


def draw_prompts(
    frame: np.ndarray,
    prompts: Sequence[str],
    origin: Tuple[int, int] = (20, 20),
    font_scale: float = 0.6,
    line_height: int = 26,
) -> np.ndarray:
    """Display instruction lines on a translucent panel."""
    output = frame.copy()
    if not prompts:
        return output
    x, y = origin
    total_w = max(cv2.getTextSize(p, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1)[0][0] for p in prompts) + 16
    total_h = line_height * len(prompts) + 8

    _rounded_rect(output, (x - 8, y - 8), (x + total_w + 8, y + total_h + 8), PANEL_COLOR, radius=10, alpha=0.6)

    yy = y + 4
    for prompt in prompts:
        cv2.putText(output, prompt, (x + 8, yy + 18), cv2.FONT_HERSHEY_SIMPLEX, font_scale, TEXT_COLOR, 1, lineType=cv2.LINE_AA)
        yy += line_height
    return output


def draw_error_banner(frame: np.ndarray, message: str) -> np.ndarray:
    """Red banner across the top of the frame for a fatal session error."""
    output = frame.copy()
    height, width = output.shape[:2]
    font_scale = 0.6
    text_size, _ = cv2.getTextSize(message, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 2)
    banner_h = text_size[1] + 24
    _rounded_rect(output, (10, 10), (width - 10, 10 + banner_h), ERROR_COLOR, radius=8, alpha=0.85)
    cv2.putText(
        output,
        message,
        (22, 10 + (banner_h + text_size[1]) // 2),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        (255, 255, 255),
        2,
        lineType=cv2.LINE_AA,
    )
    return output


def blank_frame(width: int, height: int, color: Tuple[int, int, int] = (18, 18, 20)) -> np.ndarray:
    """Placeholder canvas shown while the camera is loading or unavailable."""
    return np.full((height, width, 3), color, dtype=np.uint8)
