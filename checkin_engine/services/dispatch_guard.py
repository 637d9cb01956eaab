from __future__ import annotations

import logging
from datetime import datetime
from typing import Hashable, Optional

from checkin_engine.utils.time import ensure_aware, utcnow

logger = logging.getLogger(__name__)


class DispatchGuard:
    """
    Short-lived "already dispatched" markers keyed by check-in id and
    notification kind. Two overlapping job ticks that both see the same
    eligible check-in race on claim(); only the first one sends.

    Markers live in process memory only, so a restart forgets them.
    """

    def __init__(self) -> None:
        self._markers: dict[Hashable, datetime] = {}

    def claim(self, key: Hashable, *, until: datetime, now: Optional[datetime] = None) -> bool:
        now_ = ensure_aware(now or utcnow())
        self._purge(now_)
        if key in self._markers:
            logger.debug("Dispatch for %s already claimed until %s", key, self._markers[key])
            return False
        self._markers[key] = ensure_aware(until)
        return True

    def release(self, key: Hashable) -> None:
        self._markers.pop(key, None)

    def is_claimed(self, key: Hashable, *, now: Optional[datetime] = None) -> bool:
        self._purge(ensure_aware(now or utcnow()))
        return key in self._markers

    def __len__(self) -> int:
        return len(self._markers)

    def _purge(self, now: datetime) -> None:
        expired = [k for k, until in self._markers.items() if until < now]
        for k in expired:
            del self._markers[k]
