"""Named one-shot timers polled from the render loop."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, Optional


class TimerQueue:
    """One-shot timers keyed by name and fired from the host loop.

    Scheduling a name that is already pending replaces the old deadline.
    Nothing fires on its own: the loop calls ``pop_due`` every iteration, so
    timer handling is serialized with everything else the loop does.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._deadlines: Dict[str, float] = {}

    def schedule(self, name: str, delay: float) -> float:
        deadline = self._clock() + max(delay, 0.0)
        self._deadlines[name] = deadline
        return deadline

    def cancel(self, name: str) -> bool:
        return self._deadlines.pop(name, None) is not None

    def clear(self) -> None:
        self._deadlines.clear()

    def pending(self, name: str) -> bool:
        return name in self._deadlines

    def deadline(self, name: str) -> Optional[float]:
        return self._deadlines.get(name)

    def pop_due(self, now: Optional[float] = None) -> Iterator[str]:
        """Yield due timer names in deadline order, removing each before it is yielded.

        Timers scheduled or cancelled by the consumer between yields are
        honoured, so a handler that cancels a sibling timer prevents it firing.
        """
        if now is None:
            now = self._clock()
        while self._deadlines:
            name, deadline = min(self._deadlines.items(), key=lambda item: item[1])
            if deadline > now:
                return
            del self._deadlines[name]
            yield name

    def __len__(self) -> int:
        return len(self._deadlines)
