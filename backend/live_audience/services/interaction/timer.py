"""Per-question countdowns.

Every device runs its own countdown from the question's configured duration,
starting when its polling loop first sees the question become current. There
is no shared clock and no skew correction; devices may disagree by up to one
polling interval.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

log = logging.getLogger(__name__)

AUTO_ADVANCE_MODES = ('exam', 'always', 'never')


@dataclass(frozen=True)
class Countdown:
    duration: int
    started_at: float

    @property
    def deadline(self) -> float:
        return self.started_at + self.duration

    def remaining(self, now: float) -> int:
        elapsed = int(max(0.0, now - self.started_at))  # whole seconds
        return max(0, self.duration - elapsed)

    def expired(self, now: float) -> bool:
        return self.remaining(now) == 0


class TimerTask:
    """A countdown plus the action to run once when it reaches zero.

    ``poll`` is called from the device loop; ``cancel`` guarantees the action
    never runs afterwards, whichever exit path the view takes.
    """

    PENDING = 'pending'
    FIRED = 'fired'
    CANCELLED = 'cancelled'

    def __init__(self, countdown: Countdown, on_expire: Callable[[], None], label: str = ''):
        self.countdown = countdown
        self.on_expire = on_expire
        self.label = label
        self.state = self.PENDING

    @property
    def active(self) -> bool:
        return self.state == self.PENDING

    def remaining(self, now: float) -> int:
        return self.countdown.remaining(now) if self.active else 0

    def poll(self, now: float) -> bool:
        if not self.active or not self.countdown.expired(now):
            return False
        self.state = self.FIRED
        log.info(f"[timer-fire] {self.label} duration={self.countdown.duration}s")
        self.on_expire()
        return True

    def cancel(self) -> None:
        if self.active:
            self.state = self.CANCELLED
            log.debug(f"[timer-cancel] {self.label}")


def start_timer(duration: Optional[int], now: float, on_expire: Callable[[], None], label: str = '') -> Optional[TimerTask]:
    """Start a countdown for a question; untimed questions get no task."""
    if not duration:
        return None
    log.info(f"[timer-set] {label} duration={duration}s")
    return TimerTask(Countdown(int(duration), now), on_expire, label)


class AutoAdvancePolicy:
    """Decides whether host timer expiry forces ``next``.

    - ``exam``: exam sessions auto-advance, polls and surveys only show the
      countdown
    - ``always`` / ``never``: apply to every session type
    """

    def __init__(self, mode: str = 'exam'):
        if mode not in AUTO_ADVANCE_MODES:
            raise ValueError(f'Unknown auto-advance policy: {mode}')
        self.mode = mode

    @classmethod
    def from_config(cls, config: Mapping) -> 'AutoAdvancePolicy':
        return cls(config.get('AUTO_ADVANCE_POLICY', 'exam') or 'exam')

    def should_auto_advance(self, session_type: str) -> bool:
        if self.mode == 'always':
            return True
        if self.mode == 'never':
            return False
        return session_type == 'exam'

    def __repr__(self):
        return f'AutoAdvancePolicy({self.mode!r})'
