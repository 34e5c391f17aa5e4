"""Raw per-frame finger counting from MediaPipe hand landmarks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

NUM_LANDMARKS = 21

FINGER_JOINTS = {
    "thumb": (1, 2, 3, 4),
    "index": (5, 6, 7, 8),
    "middle": (9, 10, 11, 12),
    "ring": (13, 14, 15, 16),
    "pinky": (17, 18, 19, 20),
}

FINGER_TIPS = (4, 8, 12, 16, 20)

# The thumb is compared against its MCP joint, the other digits against their PIP joint.
THUMB_REFERENCE_JOINT = FINGER_JOINTS["thumb"][1]

DEFAULT_HANDEDNESS = "Right"

LandmarkInput = Union[np.ndarray, Sequence[Sequence[float]]]


@dataclass
class DetectionFrame:
    """One detector result: the first hand found in a frame, or no hand."""

    landmarks: Optional[np.ndarray] = None
    handedness: str = DEFAULT_HANDEDNESS
    timestamp_ms: int = 0

    @property
    def has_hand(self) -> bool:
        return self.landmarks is not None


def count_fingers(landmarks: LandmarkInput, handedness: Optional[str]) -> int:
    """Count the extended digits of a single hand.

    The thumb counts when its tip lies to the outer side of its MCP joint
    along x; which side that is depends on ``handedness``. The other four
    digits count when the tip sits above (smaller y) the joint two indices
    below it.
    """
    coords = np.asarray(landmarks, dtype=np.float32)
    if coords.ndim != 2 or coords.shape[0] < NUM_LANDMARKS or coords.shape[1] < 2:
        raise ValueError(
            f"expected {NUM_LANDMARKS} landmarks with x/y coordinates, got shape {coords.shape}"
        )

    count = 0
    thumb_tip = coords[FINGER_TIPS[0]]
    thumb_joint = coords[THUMB_REFERENCE_JOINT]
    if (handedness or DEFAULT_HANDEDNESS) == "Right":
        if thumb_tip[0] < thumb_joint[0]:
            count += 1
    elif thumb_tip[0] > thumb_joint[0]:
        count += 1

    for tip in FINGER_TIPS[1:]:
        if coords[tip][1] < coords[tip - 2][1]:
            count += 1

    return count


def observe_frame(frame: DetectionFrame) -> Optional[int]:
    """Finger count for a detection result, or ``None`` when no hand was seen."""
    if frame.landmarks is None:
        return None
    return count_fingers(frame.landmarks, frame.handedness)
