"""
OTP Resend Cooldown

A countdown that gates how often a user may ask for a new code.

    start(30) -> remaining 30, can_resend False
    tick() x30 -> remaining 0, can_resend True, timer stopped

The countdown is driven by an asyncio task that ticks once per interval.
Tests pass auto_tick=False and call tick() themselves, so no real time
passes.
"""

import asyncio
from typing import Optional

import structlog

from submanager.events import EventHub
from submanager.models.auth import CooldownSnapshot


logger = structlog.get_logger(__name__)

DEFAULT_COOLDOWN_SECONDS = 30


class ResendCooldown:
    """
    Resend gate with a one-second countdown.

    Starting while already running restarts from the full duration.
    stop() cancels the ticker and re-opens the gate.
    """

    def __init__(
        self,
        seconds: int = DEFAULT_COOLDOWN_SECONDS,
        auto_tick: bool = True,
        interval: float = 1.0,
    ):
        if seconds < 1:
            raise ValueError("Cooldown must be at least one second")

        self._default_seconds = seconds
        self._auto_tick = auto_tick
        self._interval = interval

        self._remaining = 0
        self._can_resend = True
        self._running = False
        self._task: Optional[asyncio.Task] = None

        self.changes: EventHub[CooldownSnapshot] = EventHub("resend_cooldown")

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def can_resend(self) -> bool:
        return self._can_resend

    @property
    def is_running(self) -> bool:
        return self._running

    def snapshot(self) -> CooldownSnapshot:
        return CooldownSnapshot(
            remaining_seconds=self._remaining,
            can_resend=self._can_resend,
            is_running=self._running,
        )

    def start(self, seconds: Optional[int] = None) -> None:
        """
        Arm the countdown.

        With auto_tick this must be called from inside a running event loop.
        """
        seconds = self._default_seconds if seconds is None else seconds
        if seconds < 1:
            raise ValueError("Cooldown must be at least one second")

        self._cancel_task()
        self._remaining = seconds
        self._can_resend = False
        self._running = True

        if self._auto_tick:
            self._task = asyncio.get_running_loop().create_task(self._run())

        logger.debug("resend_cooldown_started", seconds=seconds)
        self.changes.publish(self.snapshot())

    def tick(self) -> None:
        """Advance by one second. No-op when not running."""
        if not self._running:
            return

        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self._running = False
            self._can_resend = True
            # The ticker loop sees _running False and exits on its own
            self._task = None

        self.changes.publish(self.snapshot())

    def stop(self) -> None:
        """Cancel the countdown. Safe to call at any time."""
        self._cancel_task()
        was_running = self._running

        self._remaining = 0
        self._can_resend = True
        self._running = False

        if was_running:
            logger.debug("resend_cooldown_stopped")
            self.changes.publish(self.snapshot())

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            self.tick()
