"""Count-up animation for KPI values.

An animator is armed on a ``VisibilityTrigger`` and starts once the trigger
fires. The subscription removes itself after firing, so one dataset animates
exactly once; a new dataset identity resets progress and re-arms.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from fuelboard.config import Config
from fuelboard.formatting import Unit, format_value, infer_unit, reconstruct

logger = logging.getLogger(__name__)


def ease_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return 1 - (1 - t) ** 3


class VisibilityTrigger:
    """A source of "now visible" signals (viewport observer, tab switch, test)."""

    def __init__(self):
        self._callbacks: List[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        fired = False

        def once() -> None:
            nonlocal fired
            if fired:
                return
            fired = True
            unsubscribe()
            callback()

        def unsubscribe() -> None:
            if once in self._callbacks:
                self._callbacks.remove(once)

        self._callbacks.append(once)
        return unsubscribe

    def fire(self) -> None:
        for callback in list(self._callbacks):
            callback()

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)


@dataclass
class AnimationState:
    progress: float = 0.0
    has_started: bool = False
    target_value: float = 0.0


class ValueAnimator:
    def __init__(
        self,
        target_value: Optional[float] = None,
        formatted: Optional[str] = None,
        *,
        unit: Optional[Unit] = None,
        identity: Any = None,
        duration: float = Config.ANIMATION_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration = max(float(duration), 1e-9)
        self._clock = clock
        self._unit_hint = unit
        self._trigger: Optional[VisibilityTrigger] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._started_at: Optional[float] = None
        self._load(target_value, formatted, identity)

    def _load(self, target_value: Optional[float], formatted: Optional[str], identity: Any) -> None:
        if isinstance(target_value, (int, float)) and not isinstance(target_value, bool):
            baseline: Optional[float] = float(target_value)
        else:
            baseline = reconstruct(formatted)
        self.unit = infer_unit(formatted, self._unit_hint)
        self.formatted = formatted if formatted is not None else format_value(baseline, self.unit)
        self.identity = identity if identity is not None else (target_value, formatted)
        self.has_value = baseline is not None
        self.state = AnimationState(target_value=baseline or 0.0)
        self._started_at = None

    @property
    def progress(self) -> float:
        return self.state.progress

    @property
    def armed(self) -> bool:
        return self._unsubscribe is not None

    def arm(self, trigger: VisibilityTrigger) -> bool:
        self._trigger = trigger
        self._disarm()
        if self.state.has_started or not self.has_value or self.state.target_value == 0:
            return False
        self._unsubscribe = trigger.subscribe(self._on_visible)
        return True

    def update(self, target_value: Optional[float], formatted: Optional[str] = None, identity: Any = None) -> bool:
        """Feed the latest data; returns True when the animation was reset."""
        if identity is None:
            identity = (target_value, formatted)
        if identity == self.identity:
            return False
        self._disarm()
        self._load(target_value, formatted, identity)
        if self._trigger is not None:
            self.arm(self._trigger)
        return True

    def start(self, now: Optional[float] = None) -> None:
        if self.state.has_started:
            return
        self.state.has_started = True
        self._started_at = self._clock() if now is None else now

    def tick(self, now: Optional[float] = None) -> float:
        if not self.state.has_started or self._started_at is None:
            return self.state.progress
        now = self._clock() if now is None else now
        eased = ease_out_cubic((now - self._started_at) / self.duration)
        self.state.progress = max(self.state.progress, eased)
        return self.state.progress

    @property
    def done(self) -> bool:
        return self.state.progress >= 1.0

    def display(self) -> str:
        if self.state.has_started and not self.done:
            return format_value(self.state.target_value * self.state.progress, self.unit)
        return self.formatted

    async def run(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        frame_interval: float = Config.FRAME_INTERVAL,
    ) -> None:
        """Drive ticks until the animation completes; no-op until started."""
        if not self.state.has_started:
            return
        identity = self.identity
        while not self.done and self.identity == identity:
            self.tick()
            await sleep(frame_interval)

    def dispose(self) -> None:
        self._disarm()
        self._trigger = None

    def _disarm(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_visible(self) -> None:
        self._unsubscribe = None
        logger.debug("Animating %s to %s", self.identity, self.state.target_value)
        self.start()


__all__ = ["AnimationState", "ValueAnimator", "VisibilityTrigger", "ease_out_cubic"]
