from __future__ import annotations
import logging
import threading
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

REST = 'rest'
GRAPHQL = 'graphql'


class RateLimitState:
    """Remaining capacity reported by the last response of one client.

    REST stores free bucket slots, GraphQL stores remaining cost points; ``model``
    records which of the two wrote ``available``. All access goes through the
    lock so that the update and the threshold check of one response are atomic.
    Callers sleep after ``observe`` returns, never while holding the lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._available: Optional[int] = None
        self._model: Optional[str] = None

    def snapshot(self) -> Tuple[Optional[int], Optional[str]]:
        with self._lock:
            return self._available, self._model

    @property
    def available(self) -> Optional[int]:
        return self.snapshot()[0]

    def observe(self, model: str, available: Optional[int], threshold: int) -> bool:
        """Record a new reading (if any) and report whether it is below ``threshold``.

        Only a reading written by the same throttle model is compared, since
        call slots and cost points are not interchangeable.
        """
        with self._lock:
            if available is not None:
                self._available = available
                self._model = model
                logger.debug('%s rate limit: %d available', model, available)
            if self._available is None or self._model != model:
                return False
            return self._available < threshold
