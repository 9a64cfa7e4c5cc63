# dealsync/services/sweeper.py
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from dealsync.core.db import utc_now
from dealsync.core.logging import get_logger
from dealsync.services import deal_store

logger = get_logger(__name__)


class StalenessSweeper:
    """Retires active deals that no rule has confirmed within ``max_age``."""

    def __init__(
        self,
        session_factory: sessionmaker,
        max_age: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self.max_age = max_age
        self._clock = clock

    def sweep(self, max_age: Optional[timedelta] = None) -> int:
        now = self._clock()
        cutoff = now - (max_age or self.max_age)

        with self._session_factory() as db:
            stale_ids = [deal.id for deal in deal_store.list_active_older_than(db, cutoff)]

        count = 0
        for deal_id in stale_ids:
            try:
                with self._session_factory() as db:
                    if deal_store.deactivate(db, deal_id, now=now):
                        count += 1
            except SQLAlchemyError as e:
                logger.warning("Sweep could not deactivate deal %s: %s", deal_id, e)

        logger.info("Staleness sweep deactivated %d deals not updated since %s", count, cutoff)
        return count
