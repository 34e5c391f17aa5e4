"""Finger sequence challenge: show 1, then 2, then hold 3 fingers to start the countdown.

The state machine is pure. ``advance`` takes the current state and one event
(a new finger-count observation or a fired timer) and returns the next state
plus the side effects the caller must perform: start or cancel a named timer,
or capture the photo.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple, Union

STABILIZE_TIMER = "stabilize"
COUNTDOWN_TIMER = "countdown"

# Tunable timing
STABILIZE_SECONDS = 1.0
COUNTDOWN_START = 3
COUNTDOWN_TICK_SECONDS = 1.0


class Step(enum.IntEnum):
    IDLE = 0
    FIRST = 1
    SECOND = 2
    CAPTURING = 3


@dataclass(frozen=True)
class SequenceTiming:
    stabilize_seconds: float = STABILIZE_SECONDS
    countdown_start: int = COUNTDOWN_START
    tick_seconds: float = COUNTDOWN_TICK_SECONDS


@dataclass(frozen=True)
class SequenceState:
    step: Step = Step.IDLE
    finger_count: Optional[int] = None
    countdown: int = 0
    stabilizing: bool = False
    captured: bool = False

    @property
    def is_counting_down(self) -> bool:
        return self.step == Step.CAPTURING and not self.captured


# Events
@dataclass(frozen=True)
class FingerObserved:
    count: Optional[int]


@dataclass(frozen=True)
class TimerFired:
    name: str


# Effects
@dataclass(frozen=True)
class StartTimer:
    name: str
    delay: float


@dataclass(frozen=True)
class CancelTimer:
    name: str


@dataclass(frozen=True)
class CapturePhoto:
    pass


Event = Union[FingerObserved, TimerFired]
Effect = Union[StartTimer, CancelTimer, CapturePhoto]


@dataclass(frozen=True)
class Transition:
    state: SequenceState
    effects: Tuple[Effect, ...] = field(default_factory=tuple)


def advance(
    state: SequenceState, event: Event, timing: SequenceTiming = SequenceTiming()
) -> Transition:
    if isinstance(event, FingerObserved):
        return _on_finger_count(state, event.count, timing)
    if isinstance(event, TimerFired):
        return _on_timer(state, event.name, timing)
    raise TypeError(f"unsupported event: {event!r}")


def reset(state: SequenceState) -> Transition:
    """Abort progress back to ``IDLE``. Ignored once the countdown is running."""
    if state.is_counting_down or state.captured:
        return Transition(state)
    effects: List[Effect] = []
    if state.stabilizing:
        effects.append(CancelTimer(STABILIZE_TIMER))
    return Transition(SequenceState(finger_count=state.finger_count), tuple(effects))


def _on_finger_count(
    state: SequenceState, count: Optional[int], timing: SequenceTiming
) -> Transition:
    if state.is_counting_down or state.captured:
        # Lowering the hand during the countdown is allowed.
        return Transition(replace(state, finger_count=count))

    if count == state.finger_count:
        return Transition(state)

    effects: List[Effect] = []
    state = replace(state, finger_count=count)
    if state.stabilizing:
        # The 3-finger hold was interrupted; a later 3 restarts the timer from zero.
        state = replace(state, stabilizing=False)
        effects.append(CancelTimer(STABILIZE_TIMER))

    step = state.step
    if step == Step.IDLE and count == 1:
        state = replace(state, step=Step.FIRST)
    elif step == Step.FIRST and count == 2:
        state = replace(state, step=Step.SECOND)
    elif step == Step.SECOND and count == 3:
        state = replace(state, stabilizing=True)
        effects.append(StartTimer(STABILIZE_TIMER, timing.stabilize_seconds))
    elif count is not None and count not in (step, step + 1):
        transition = reset(state)
        state = transition.state
        effects.extend(transition.effects)
    elif count is None and step > Step.IDLE:
        transition = reset(state)
        state = transition.state
        effects.extend(transition.effects)

    return Transition(state, tuple(effects))


def _on_timer(state: SequenceState, name: str, timing: SequenceTiming) -> Transition:
    if name == STABILIZE_TIMER:
        if not state.stabilizing or state.step != Step.SECOND:
            return Transition(state)
        state = replace(
            state,
            step=Step.CAPTURING,
            stabilizing=False,
            countdown=timing.countdown_start,
        )
        return Transition(state, (StartTimer(COUNTDOWN_TIMER, timing.tick_seconds),))

    if name == COUNTDOWN_TIMER:
        if not state.is_counting_down:
            return Transition(state)
        remaining = state.countdown - 1
        if remaining <= 0:
            return Transition(replace(state, countdown=0, captured=True), (CapturePhoto(),))
        return Transition(
            replace(state, countdown=remaining),
            (StartTimer(COUNTDOWN_TIMER, timing.tick_seconds),),
        )

    return Transition(state)
