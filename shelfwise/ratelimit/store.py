"""
Counter stores for the rate limiter.

Two backends behind one async interface:
- InMemoryCounterStore for single-process deployments and tests
- DatabaseCounterStore for counters shared between instances
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from shelfwise.storage.database import Database
from shelfwise.storage.models import RateLimitCounterModel


class CounterStore(ABC):
    """Integer counters with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[int]:
        """Current value, or None if missing/expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: int) -> None:
        pass

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically add one and return the new value."""
        pass

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class InMemoryCounterStore(CounterStore):
    """
    Dict-backed counters.

    Expired keys are dropped lazily on access. All operations run without
    awaiting, so each one is atomic on the event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._values: dict[str, int] = {}
        self._deadlines: dict[str, float] = {}
        self._clock = clock

    def _purge_if_expired(self, key: str) -> None:
        deadline = self._deadlines.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._values.pop(key, None)
            self._deadlines.pop(key, None)

    async def get(self, key: str) -> Optional[int]:
        self._purge_if_expired(key)
        return self._values.get(key)

    async def set(self, key: str, value: int) -> None:
        self._purge_if_expired(key)
        self._values[key] = value

    async def incr(self, key: str) -> int:
        self._purge_if_expired(key)
        value = self._values.get(key, 0) + 1
        self._values[key] = value
        return value

    async def expire(self, key: str, seconds: int) -> None:
        if key in self._values:
            self._deadlines[key] = self._clock() + seconds

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._deadlines.pop(key, None)

    def __len__(self) -> int:
        return len(self._values)


class DatabaseCounterStore(CounterStore):
    """
    Counters in the ``rate_limit_counters`` table.

    ``incr`` is a single ``UPDATE ... SET count = count + 1`` so concurrent
    instances never lose increments.
    """

    def __init__(self, database: Database):
        self.database = database
        logger.info("DatabaseCounterStore initialized")

    @staticmethod
    def _live(now: datetime):
        return (RateLimitCounterModel.expires_at.is_(None)) | (RateLimitCounterModel.expires_at > now)

    def _drop_expired(self, session, key: str, now: datetime) -> None:
        session.execute(
            delete(RateLimitCounterModel).where(
                RateLimitCounterModel.key == key,
                RateLimitCounterModel.expires_at.isnot(None),
                RateLimitCounterModel.expires_at <= now,
            )
        )

    async def get(self, key: str) -> Optional[int]:
        now = datetime.utcnow()
        with self.database.session() as session:
            return session.execute(
                select(RateLimitCounterModel.count).where(
                    RateLimitCounterModel.key == key,
                    self._live(now),
                )
            ).scalar_one_or_none()

    async def set(self, key: str, value: int) -> None:
        with self.database.session() as session:
            counter = session.get(RateLimitCounterModel, key)
            if counter is None:
                session.add(RateLimitCounterModel(key=key, count=value))
            else:
                counter.count = value
            session.commit()

    async def incr(self, key: str) -> int:
        now = datetime.utcnow()
        with self.database.session() as session:
            self._drop_expired(session, key, now)

            result = session.execute(
                update(RateLimitCounterModel)
                .where(RateLimitCounterModel.key == key)
                .values(count=RateLimitCounterModel.count + 1)
            )
            if result.rowcount == 0:
                try:
                    with session.begin_nested():
                        session.add(RateLimitCounterModel(key=key, count=1))
                except IntegrityError:
                    # Another instance created the row first
                    session.execute(
                        update(RateLimitCounterModel)
                        .where(RateLimitCounterModel.key == key)
                        .values(count=RateLimitCounterModel.count + 1)
                    )

            value = session.execute(
                select(RateLimitCounterModel.count).where(RateLimitCounterModel.key == key)
            ).scalar_one()
            session.commit()
            return value

    async def expire(self, key: str, seconds: int) -> None:
        with self.database.session() as session:
            session.execute(
                update(RateLimitCounterModel)
                .where(RateLimitCounterModel.key == key)
                .values(expires_at=datetime.utcnow() + timedelta(seconds=seconds))
            )
            session.commit()

    async def delete(self, key: str) -> None:
        with self.database.session() as session:
            session.execute(delete(RateLimitCounterModel).where(RateLimitCounterModel.key == key))
            session.commit()
