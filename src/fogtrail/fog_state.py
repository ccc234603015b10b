"""Fog overlay movement/fade state machine.

    IDLE ──refresh──▶ SETTLED ◀──fade complete── FADING
      │                  │                         ▲
      └──move start──▶ MOVING ──settle elapsed─────┘

Any move start from SETTLED or FADING goes straight back to MOVING; a
partial fade is abandoned, not resumed. DETACHED is terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FogState(Enum):
    IDLE = "idle"
    MOVING = "moving"
    FADING = "fading"
    SETTLED = "settled"
    DETACHED = "detached"


class FogEvent(Enum):
    REFRESH = "refresh"
    MOVE_START = "move_start"
    MOVE_END = "move_end"
    SETTLE_ELAPSED = "settle_elapsed"
    FADE_COMPLETE = "fade_complete"
    DETACH = "detach"


_TRANSITIONS: dict[tuple[FogState, FogEvent], FogState] = {
    (FogState.IDLE, FogEvent.REFRESH): FogState.SETTLED,
    (FogState.IDLE, FogEvent.MOVE_START): FogState.MOVING,
    (FogState.SETTLED, FogEvent.MOVE_START): FogState.MOVING,
    (FogState.FADING, FogEvent.MOVE_START): FogState.MOVING,
    (FogState.MOVING, FogEvent.MOVE_START): FogState.MOVING,
    (FogState.IDLE, FogEvent.SETTLE_ELAPSED): FogState.FADING,
    (FogState.MOVING, FogEvent.SETTLE_ELAPSED): FogState.FADING,
    (FogState.SETTLED, FogEvent.SETTLE_ELAPSED): FogState.FADING,
    (FogState.FADING, FogEvent.FADE_COMPLETE): FogState.SETTLED,
}


def transition(state: FogState, event: FogEvent) -> FogState:
    """Next state for ``event``; unlisted pairs keep the current state."""
    if state is FogState.DETACHED:
        return state
    if event is FogEvent.DETACH:
        return FogState.DETACHED
    return _TRANSITIONS.get((state, event), state)


def ease_out_cubic(t: float) -> float:
    t = max(0.0, min(1.0, t))
    return 1 - (1 - t) ** 3


@dataclass(frozen=True)
class FadeAnimation:
    """A fade-in started at ``started_at`` (seconds) lasting ``duration`` seconds."""

    started_at: float
    duration: float

    def linear(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return max(0.0, min(1.0, (now - self.started_at) / self.duration))

    def progress(self, now: float) -> float:
        """Eased hole opacity in [0, 1]."""
        return ease_out_cubic(self.linear(now))

    def finished(self, now: float) -> bool:
        return self.linear(now) >= 1.0
