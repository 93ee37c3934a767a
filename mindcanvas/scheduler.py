"""Frame coalescing and hover rate limiting.

Input events can arrive far faster than the display refreshes. Render
requests are folded into at most one draw per frame, and hover hit-testing
is limited to once per interval of wall time.
"""

import time
from typing import Callable, Optional

# A scheduler hook receives the callback to run on the next frame.
ScheduleFunc = Callable[[Callable[[], None]], None]


class FrameScheduler:
    """Collapse any number of render requests into one draw per frame."""

    def __init__(self, schedule: ScheduleFunc, draw: Callable[[bool], None]):
        self._schedule = schedule
        self._draw = draw
        self._pending = False
        self._fast = True
        self.frames_drawn = 0

    @property
    def pending(self) -> bool:
        return self._pending

    def attach(self, schedule: ScheduleFunc):
        """Route future frames through another scheduling hook."""
        self._schedule = schedule
        if self._pending:
            schedule(self._on_frame)

    def request(self, fast: bool = False):
        """Ask for a redraw; the frame is fast only if every request was."""
        self._fast = self._fast and fast
        if self._pending:
            return
        self._pending = True
        self._schedule(self._on_frame)

    def _on_frame(self):
        fast = self._fast
        self._pending = False
        self._fast = True
        self.frames_drawn += 1
        self._draw(fast)


class HoverThrottle:
    """Allow an action at most once per ``interval`` seconds."""

    def __init__(self, interval: float = 0.1, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        """Return True (and start a new window) if the interval has elapsed."""
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        return True

    def reset(self):
        self._last = None
