"""
Query cache for store reads.

One :class:`QueryCache` is created by the application root and handed to the
data layer. Results are keyed by ``(entity, operation, params)`` so reads with
different filters are cached apart, while identical reads share one in-flight
request and one stored result. Writes call :meth:`QueryCache.invalidate` with
an entity prefix so the next read goes back to the store.
"""
import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from stockdesk.errors import NotFoundError, StockdeskError
from stockdesk.logger import get_logger

logger = get_logger(__name__)

CacheKey = Tuple[str, ...]


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class QueryResult:
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Optional[Exception] = None

    @property
    def is_idle(self) -> bool:
        return self.status is QueryStatus.IDLE

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR

    @property
    def is_not_found(self) -> bool:
        return isinstance(self.error, NotFoundError)


def make_key(entity: str, operation: str, params: Optional[Mapping[str, Any]] = None) -> CacheKey:
    clean = {k: v for k, v in (params or {}).items() if v is not None}
    return (entity, operation, json.dumps(clean, sort_keys=True, default=str))


def _matches(key: CacheKey, prefix: CacheKey) -> bool:
    return key[:len(prefix)] == prefix


class QueryCache:
    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self._errors: Dict[CacheKey, StockdeskError] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[QueryResult]"] = {}

    def state(self, key: CacheKey) -> QueryResult:
        if key in self._inflight:
            return QueryResult(QueryStatus.LOADING)
        if key in self._entries:
            return QueryResult(QueryStatus.SUCCESS, data=self._entries[key])
        if key in self._errors:
            return QueryResult(QueryStatus.ERROR, error=self._errors[key])
        return QueryResult()

    async def fetch(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> QueryResult:
        if key in self._entries:
            return QueryResult(QueryStatus.SUCCESS, data=self._entries[key])

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            self._inflight[key] = task
        else:
            logger.debug("joining in-flight request for %s", key)
        # shield so one cancelled waiter does not cancel the shared request
        return await asyncio.shield(task)

    async def _load(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> QueryResult:
        me = asyncio.current_task()
        try:
            data = await loader()
        except StockdeskError as exc:
            logger.warning("query %s failed: %s", key[:2], exc)
            if self._inflight.get(key) is me:
                del self._inflight[key]
                self._errors[key] = exc
            return QueryResult(QueryStatus.ERROR, error=exc)
        except BaseException:
            if self._inflight.get(key) is me:
                del self._inflight[key]
            raise

        # a request detached by invalidate() still answers its waiters but is not stored
        if self._inflight.get(key) is me:
            del self._inflight[key]
            self._entries[key] = data
            self._errors.pop(key, None)
        return QueryResult(QueryStatus.SUCCESS, data=data)

    def invalidate(self, prefix: CacheKey = ()) -> int:
        """Forget results under ``prefix``; returns how many stored results were dropped"""
        stale = [k for k in self._entries if _matches(k, prefix)]
        for k in stale:
            del self._entries[k]
        for k in [k for k in self._errors if _matches(k, prefix)]:
            del self._errors[k]
        for k in [k for k in self._inflight if _matches(k, prefix)]:
            del self._inflight[k]
        if stale:
            logger.debug("invalidated %d cached read(s) under %s", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        self.invalidate(())
