"""
Cache abstractions with TTL support.

The recommendation pipeline needs key/value blobs (feature JSON), plain sets
(watched / recommended / blocked ids) and one sorted set (hot videos), so the
interface mirrors the subset of Redis commands it uses. InMemoryCache is the
L1/dev implementation; RedisCache (see redis_cache.py) is used in production.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Set

from feedrec.core.circuit_breaker import CircuitBreaker
from feedrec.core.exceptions import CacheError


class CacheInterface(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get value by key, returns None if not found or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Set value with optional TTL."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key, returns True if existed."""

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set, returns number newly added."""

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set, returns number removed."""

    @abstractmethod
    async def sismember(self, key: str, member: str) -> bool:
        """Check set membership."""

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]:
        """Return all members of a set (empty if missing)."""

    @abstractmethod
    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        """Add or update scored members of a sorted set."""

    @abstractmethod
    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        """Members by descending score, inclusive index range like Redis."""

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on an existing key."""

    @abstractmethod
    async def ping(self) -> bool:
        """Health check."""

    async def close(self) -> None:
        """Release connections; no-op for in-process caches."""


class CacheEntry:
    """Single cache entry with expiration tracking."""

    def __init__(self, value: Any, expires_at: Optional[float]) -> None:
        self.value = value
        self.expires_at = expires_at

    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class InMemoryCache(CacheInterface):
    """
    Thread-safe in-memory cache with TTL support.

    Strings, sets and sorted sets share one keyspace, as in Redis.

    Usage:
        cache = InMemoryCache(default_ttl_seconds=300)
        await cache.set("user:feature:1", blob, ttl_seconds=3600)
    """

    def __init__(self, default_ttl_seconds: Optional[float] = None) -> None:
        self._store: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._lock = Lock()

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Caller holds the lock
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._store[key]
            return None
        return entry

    def _expires_at(self, ttl: Optional[float]) -> Optional[float]:
        ttl = ttl if ttl is not None else self._default_ttl
        return time.time() + ttl if ttl else None

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._expires_at(ttl_seconds)
        with self._lock:
            self._store[key] = CacheEntry(value, expires_at)

    async def delete(self, key: str) -> bool:
        with self._lock:
            if self._live_entry(key) is not None:
                del self._store[key]
                return True
            return False

    async def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                # New collections never inherit the default TTL, only expire()
                entry = CacheEntry(set(), None)
                self._store[key] = entry
            before = len(entry.value)
            entry.value.update(members)
            return len(entry.value) - before

    async def srem(self, key: str, *members: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return 0
            removed = len(entry.value & set(members))
            entry.value.difference_update(members)
            return removed

    async def sismember(self, key: str, member: str) -> bool:
        with self._lock:
            entry = self._live_entry(key)
            return entry is not None and member in entry.value

    async def smembers(self, key: str) -> Set[str]:
        with self._lock:
            entry = self._live_entry(key)
            return set(entry.value) if entry is not None else set()

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                entry = CacheEntry({}, None)
                self._store[key] = entry
            added = len(set(mapping) - set(entry.value))
            entry.value.update(mapping)
            return added

    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return []
            ordered = sorted(entry.value.items(), key=lambda kv: (-kv[1], kv[0]))
        members = [member for member, _ in ordered]
        end = None if stop == -1 else stop + 1
        return members[start:end]

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            entry.expires_at = time.time() + ttl_seconds
            return True

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return number of entries (including possibly expired)."""
        with self._lock:
            return len(self._store)

    def cleanup_expired(self) -> int:
        """Remove expired entries, return count removed."""
        removed = 0
        with self._lock:
            expired_keys = [k for k, v in self._store.items() if v.is_expired()]
            for key in expired_keys:
                del self._store[key]
                removed += 1
        return removed


class GuardedCache(CacheInterface):
    """
    Wraps a cache with a per-call timeout and a circuit breaker.

    Every failure surfaces as CacheError or CircuitBreakerOpenError; services
    catch both and fall back to the store.
    """

    def __init__(
        self,
        inner: CacheInterface,
        breaker: CircuitBreaker,
        timeout_ms: Optional[int] = None,
    ) -> None:
        self._inner = inner
        self._breaker = breaker
        self._timeout = timeout_ms / 1000.0 if timeout_ms else None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def _guard(self, operation: str, func) -> Any:
        async def attempt() -> Any:
            try:
                return await asyncio.wait_for(func(), timeout=self._timeout)
            except asyncio.TimeoutError as e:
                raise CacheError(operation, "timeout") from e
            except CacheError:
                raise
            except Exception as e:
                raise CacheError(operation, str(e)) from e

        return await self._breaker.call_async(attempt)

    async def get(self, key: str) -> Optional[str]:
        return await self._guard("get", lambda: self._inner.get(key))

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self._guard("set", lambda: self._inner.set(key, value, ttl_seconds))

    async def delete(self, key: str) -> bool:
        return await self._guard("delete", lambda: self._inner.delete(key))

    async def sadd(self, key: str, *members: str) -> int:
        return await self._guard("sadd", lambda: self._inner.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        return await self._guard("srem", lambda: self._inner.srem(key, *members))

    async def sismember(self, key: str, member: str) -> bool:
        return await self._guard("sismember", lambda: self._inner.sismember(key, member))

    async def smembers(self, key: str) -> Set[str]:
        return await self._guard("smembers", lambda: self._inner.smembers(key))

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        return await self._guard("zadd", lambda: self._inner.zadd(key, mapping))

    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        return await self._guard("zrevrange", lambda: self._inner.zrevrange(key, start, stop))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return await self._guard("expire", lambda: self._inner.expire(key, ttl_seconds))

    async def ping(self) -> bool:
        return await self._guard("ping", self._inner.ping)

    async def close(self) -> None:
        await self._inner.close()


def as_members(ids: Iterable[int]) -> List[str]:
    """Encode integer ids as cache set members."""
    return [str(i) for i in ids]
