#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Redis Cache Manager
Result cache and usage counter with per-entry TTL, Redis or in-memory backend
"""

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import redis

logger = logging.getLogger(__name__)

RESULT_TTL = 3600      # 1 hour
USAGE_TTL = 86400      # 24 hours


class MemoryStore:
    """In-process store; an entry read past its expiry is treated as absent"""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._data: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[tuple]:
        entry = self._data.get(key)
        if entry is None or self.clock() >= entry[1]:
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self._live(key)
        return entry[0] if entry else None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        with self._lock:
            self._data[key] = (value, self.clock() + ttl)
        return True

    def incr(self, key: str, ttl: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = (1, self.clock() + ttl)
                return 1
            count = entry[0] + 1
            self._data[key] = (count, entry[1])
            return count

    def keys(self, prefix: str) -> List[str]:
        return [k for k in list(self._data) if k.startswith(prefix) and self._live(k)]

    def purge_expired(self) -> int:
        """Optional active eviction; reads never depend on it"""
        with self._lock:
            now = self.clock()
            expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for k in expired:
                del self._data[k]
        return len(expired)


class RedisStore:
    """Redis-backed store; values are JSON encoded"""

    name = "redis"

    def __init__(self, client: "redis.Redis"):
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self.client.get(key)
            if value is not None:
                return json.loads(value)
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Redis get failed for {key}: {e}")
        return None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            return bool(self.client.setex(key, ttl, json.dumps(value, default=str)))
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis set failed for {key}: {e}")
            return False

    def incr(self, key: str, ttl: int) -> int:
        try:
            # one round trip; NX keeps the expiry set by the first increment
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.expire(key, ttl, nx=True)
            count, _ = pipe.execute()
            return int(count)
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis incr failed for {key}: {e}")
            return 0

    def keys(self, prefix: str) -> List[str]:
        try:
            return list(self.client.scan_iter(match=f"{prefix}*"))
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis scan failed: {e}")
            return []


def create_store(redis_url: Optional[str] = None):
    """Redis when configured and reachable, memory otherwise"""
    if not redis_url:
        logger.info("[CACHE] Using memory cache (REDIS_URL not set)")
        return MemoryStore()

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
        logger.info("[CACHE] Redis cache initialized")
        return RedisStore(client)
    except redis.RedisError as e:
        logger.warning(f"[CACHE] Redis initialization failed, using memory cache: {e}")
        return MemoryStore()


class ResultCache:
    """Assembled summaries keyed by video id; last successful put wins"""

    prefix = "summary:"

    def __init__(self, store, ttl: int = RESULT_TTL):
        self.store = store
        self.ttl = ttl

    def get(self, identifier: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.prefix + identifier)

    def put(self, identifier: str, payload: Dict[str, Any]) -> bool:
        return self.store.set(self.prefix + identifier, payload, self.ttl)


class UsageCounter:
    """Per-video request counts; the window starts at the first count"""

    prefix = "usage:"

    def __init__(self, store, ttl: int = USAGE_TTL):
        self.store = store
        self.ttl = ttl

    def increment(self, identifier: str) -> int:
        return self.store.incr(self.prefix + identifier, self.ttl)

    def get(self, identifier: str) -> int:
        return int(self.store.get(self.prefix + identifier) or 0)

    def top(self, limit: int = 10) -> List[Dict[str, Any]]:
        counts = []
        for key in self.store.keys(self.prefix):
            count = int(self.store.get(key) or 0)
            if count:
                counts.append({"videoId": key[len(self.prefix):], "count": count})
        counts.sort(key=lambda item: (-item["count"], item["videoId"]))
        return counts[:limit]
