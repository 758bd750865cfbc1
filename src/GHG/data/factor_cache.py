"""Stale-while-revalidate cache of the emission factor table.

Readers always get a complete, immutable snapshot. When the snapshot is older than the TTL one background refresh is
started; readers keep the previous snapshot until that refresh has replaced it.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from ..configs import FactorConfig, LoggingConfig
from ..data.data_providers import EmissionFactorProvider, FetchFailure
from ..interfaces import IFactorTable, emptyFactorTable

logger = logging.getLogger(__name__)
LoggingConfig.add_config_to_logger(logger)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FactorTableSnapshot:
    data: IFactorTable
    fetched_at: datetime

    def is_stale(self, now: datetime, ttl: timedelta = FactorConfig.CACHE_TTL) -> bool:
        return now - self.fetched_at >= ttl


class FactorTableCache:
    """
    :param source: An EmissionFactorProvider, or a zero-argument callable returning an IFactorTable
    :param ttl: Age at which a snapshot is refreshed
    :param now: Clock returning timezone-aware datetimes
    :param executor: Where background refreshes run; a single worker thread by default
    """

    def __init__(
        self,
        source: Union[EmissionFactorProvider, Callable[[], IFactorTable]],
        ttl: timedelta = FactorConfig.CACHE_TTL,
        now: Callable[[], datetime] = utc_now,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        self._fetch = source.fetch_factor_table if isinstance(source, EmissionFactorProvider) else source
        self.ttl = ttl
        self._now = now
        self._executor = executor
        self._lock = threading.Lock()
        self._load_lock = threading.Lock()
        self._snapshot: Optional[FactorTableSnapshot] = None
        self._refreshing = False
        self._refresh: Optional[concurrent.futures.Future] = None

    def _load(self, now: datetime) -> FactorTableSnapshot:
        return FactorTableSnapshot(self._fetch(), now)

    def _get_executor(self) -> concurrent.futures.Executor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="factor-cache")
        return self._executor

    def _background_refresh(self, now: datetime) -> None:
        snapshot = None
        try:
            snapshot = self._load(now)
        except (FetchFailure, OSError, ValueError) as e:
            # The previous snapshot stays in place and the next stale read tries again
            logger.error(f"Emission factor refresh failed: {e}")
        finally:
            with self._lock:
                if snapshot is not None:
                    self._snapshot = snapshot
                self._refreshing = False
        if snapshot is not None:
            logger.info(f"Emission factor table refreshed ({len(snapshot.data)} factors)")

    def get(self, now: Optional[datetime] = None) -> FactorTableSnapshot:
        """The current snapshot. Loads synchronously the first time; afterwards never waits for the source."""
        now = now if now is not None else self._now()
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            # Concurrent first readers wait for one load instead of each fetching the table
            with self._load_lock:
                with self._lock:
                    snapshot = self._snapshot
                if snapshot is None:
                    return self.refresh(now)

        if snapshot.is_stale(now, self.ttl):
            with self._lock:
                start = not self._refreshing
                self._refreshing = True
            if start:
                logger.info("Emission factor table is stale; refreshing in the background")
                self._refresh = self._get_executor().submit(self._background_refresh, now)
        return snapshot

    @property
    def refreshing(self) -> bool:
        with self._lock:
            return self._refreshing

    def get_table(self) -> IFactorTable:
        return self.get().data

    def refresh(self, now: Optional[datetime] = None) -> FactorTableSnapshot:
        """Load the table now, in the calling thread. If the load fails an empty table is cached, so that factors
        fall back until the next refresh.
        """
        now = now if now is not None else self._now()
        try:
            snapshot = self._load(now)
        except (FetchFailure, OSError, ValueError) as e:
            logger.error(f"Could not load emission factors, using an empty table: {e}")
            snapshot = FactorTableSnapshot(emptyFactorTable, now)
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def wait_for_refresh(self, timeout: Optional[float] = None) -> None:
        """Block until the last background refresh has been applied"""
        future = self._refresh
        if future is not None:
            concurrent.futures.wait([future], timeout=timeout)

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
