"""
Per-match, per-class throttling of candidate events.

Melee produces dozens of state changes a second. Each event class has its
own minimum re-fire interval, so frequent low-value events (shield
presses) are suppressed without delaying rare high-value ones (stock
losses). Events that lose the race are dropped, never queued.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Callable, Dict, Hashable, Optional, Tuple

from slippi_coach.config import ThrottleConfig
from slippi_coach.events.schema import CandidateEvent, EventClass, StockLost, event_class

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def thresholds_from_config(config: ThrottleConfig) -> Dict[EventClass, float]:
    return {
        EventClass.STOCK_LOSS: config.stock_loss_ms,
        EventClass.SIGNIFICANT_COMBO: config.significant_combo_ms,
        EventClass.MINOR_COMBO: config.minor_combo_ms,
        EventClass.NEUTRAL_EXCHANGE: config.neutral_exchange_ms,
        EventClass.FRAME_UPDATE: config.frame_update_ms,
    }


class AdmissionController:
    """
    Decide whether a candidate event enters the pending queue.

    Throttle state is a single map ``(match, class[, player]) -> last
    admitted time`` owned by this instance. ``clock`` returns milliseconds
    and is injectable so tests can drive time by hand.

    With ``per_player_stock_throttle`` the STOCK_LOSS bucket is also keyed
    by player index, so two different players losing a stock in the same
    window are both admitted.
    """

    def __init__(
        self,
        config: Optional[ThrottleConfig] = None,
        clock: Clock = monotonic_ms,
    ) -> None:
        config = config or ThrottleConfig()
        self.thresholds = thresholds_from_config(config)
        self.per_player_stock_throttle = config.per_player_stock_throttle
        self._clock = clock
        self._last_admitted: Dict[Tuple[Hashable, ...], float] = {}
        self.accepted: Counter = Counter()
        self.dropped: Counter = Counter()

    def _bucket(self, handle: str, event: CandidateEvent, cls: EventClass) -> Tuple[Hashable, ...]:
        if self.per_player_stock_throttle and isinstance(event, StockLost):
            return (handle, cls, event.player_index)
        return (handle, cls)

    def admit(self, handle: str, event: CandidateEvent) -> bool:
        cls = event_class(event)
        if cls is EventClass.LIFECYCLE:
            self.accepted[cls] += 1
            return True

        now = self._clock()
        bucket = self._bucket(handle, event, cls)
        last = self._last_admitted.get(bucket)
        if last is not None and now - last < self.thresholds[cls]:
            self.dropped[cls] += 1
            logger.debug(
                "%s: throttled %s (%.0f ms since last, threshold %.0f ms)",
                handle, cls.value, now - last, self.thresholds[cls],
            )
            return False

        self._last_admitted[bucket] = now
        self.accepted[cls] += 1
        return True

    def forget(self, handle: str) -> None:
        """Drop all throttle state for a match."""
        for bucket in [b for b in self._last_admitted if b[0] == handle]:
            del self._last_admitted[bucket]
