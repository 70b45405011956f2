"""Flag contracts whose same-day volume dwarfs their open interest."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from zerodte.models.candidates import NakedPositionEvent, utcnow
from zerodte.models.option import OptionContract

logger = logging.getLogger(__name__)

DEFAULT_NAKED_THRESHOLD = 1.5


class AnomalyDetector:
    """Emit a :class:`NakedPositionEvent` when ``volume > open_interest * threshold``.

    Contracts with no open interest or no volume never qualify. The detector
    is stateless and has no side effects; persisting events is the caller's job.
    """

    def __init__(self, threshold: float = DEFAULT_NAKED_THRESHOLD) -> None:
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self.threshold = float(threshold)

    def check(
        self,
        contract: OptionContract,
        underlying_price: Optional[float] = None,
        detected_at: Optional[datetime] = None,
    ) -> Optional[NakedPositionEvent]:
        if contract.open_interest <= 0 or contract.volume <= 0:
            return None
        if contract.volume <= contract.open_interest * self.threshold:
            return None

        ratio = contract.volume / contract.open_interest
        return NakedPositionEvent(
            symbol=contract.symbol,
            option_symbol=contract.option_symbol,
            side=contract.side,
            strike=contract.strike,
            expiration=contract.expiration,
            volume=contract.volume,
            open_interest=contract.open_interest,
            volume_oi_ratio=ratio,
            threshold=self.threshold,
            bid=contract.bid,
            ask=contract.ask,
            mark=contract.mark,
            underlying_price=underlying_price,
            detected_at=detected_at or utcnow(),
        )

    def scan(
        self,
        contracts: Iterable[OptionContract],
        underlying_price: Optional[float] = None,
    ) -> List[NakedPositionEvent]:
        detected_at = utcnow()
        events = []
        for contract in contracts:
            event = self.check(contract, underlying_price=underlying_price, detected_at=detected_at)
            if event is not None:
                events.append(event)
        if events:
            logger.info(
                "Detected %d naked positions for %s (threshold %.2f)",
                len(events),
                events[0].symbol,
                self.threshold,
            )
        return events


__all__ = ["AnomalyDetector", "DEFAULT_NAKED_THRESHOLD"]
