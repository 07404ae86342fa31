"""
Level-up celebration window

A small state machine behind the transient "leveled up" flag:

    Idle --level increase--> Celebrating(expires_at) --timeout--> Idle
                                  |  ^
                                  +--+ level increase (timer re-armed)

Nothing here is persisted; it only reflects level changes the live view has
observed.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from src.config import LEVEL_UP_CELEBRATION_SECONDS

logger = logging.getLogger(__name__)


class CelebrationState(str, Enum):
    IDLE = "idle"
    CELEBRATING = "celebrating"


class LevelUpCelebration:
    """Tracks observed levels and raises a flag for a fixed window after each increase"""

    def __init__(
        self,
        duration: float = LEVEL_UP_CELEBRATION_SECONDS,
        on_change: Optional[Callable[[bool], None]] = None,
    ):
        self.duration = duration
        self._on_change = on_change
        self._state = CelebrationState.IDLE
        self._expires_at: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._last_level: Optional[int] = None

    @property
    def state(self) -> CelebrationState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is CelebrationState.CELEBRATING

    @property
    def expires_at(self) -> Optional[float]:
        """Event-loop time at which the current celebration ends"""
        return self._expires_at

    def observe_level(self, level: int) -> bool:
        """
        Feed the latest observed level.

        The first observation only sets the baseline. Returns True when the
        level went up and a celebration (re)started.
        """
        previous = self._last_level
        self._last_level = level
        if previous is None or level <= previous:
            return False
        self._start()
        return True

    def cancel(self) -> None:
        """Drop back to Idle without notifying (used on teardown)"""
        self._cancel_timer()
        self._state = CelebrationState.IDLE
        self._expires_at = None

    def _start(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._state = CelebrationState.CELEBRATING
        self._expires_at = loop.time() + self.duration
        self._timer = loop.call_later(self.duration, self._expire)
        logger.debug(f"Level-up celebration started for {self.duration}s")
        self._notify()

    def _expire(self) -> None:
        self._timer = None
        self._state = CelebrationState.IDLE
        self._expires_at = None
        logger.debug("Level-up celebration ended")
        self._notify()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self) -> None:
        if self._on_change:
            self._on_change(self.active)
