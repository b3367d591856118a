"""Sliding window throttles guarding the provisioning endpoint."""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, Protocol

from redis import Redis
from redis.exceptions import RedisError, WatchError

from ..config import Settings

logger = logging.getLogger(__name__)


class Throttle(Protocol):
    def allow(self, key: str) -> bool:
        ...


class SlidingWindowThrottle:
    """Thread-safe in-process sliding window throttle."""

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._events: defaultdict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Return ``True`` when ``key`` is still under the configured limit."""
        now = time.monotonic()
        with self._lock:
            window = self._events[key]
            while window and now - window[0] > self._window:
                window.popleft()
            if len(window) >= self._max_requests:
                return False
            window.append(now)
            return True


class RedisSlidingWindowThrottle:
    """Throttle shared between service replicas using Redis sorted sets.

    Each accepted attempt is a uniquely named member scored by its timestamp.
    The count is read under WATCH and the attempt is only added inside MULTI,
    so rejected attempts never touch the set and concurrent writers retry.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "provision-throttle",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        member = f"{now_ms}:{uuid.uuid4().hex}"
        window_start = now_ms - self._window_ms

        with self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(redis_key)
                    current = pipe.zcount(redis_key, f"({window_start}", "+inf")
                    if int(current) >= self._max_requests:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.zremrangebyscore(redis_key, 0, window_start)
                    pipe.zadd(redis_key, {member: now_ms})
                    pipe.pexpire(redis_key, self._window_ms)
                    pipe.execute()
                    return True
                except WatchError:
                    continue


def build_throttle(settings: Settings) -> Throttle:
    """Instantiate the configured throttle backend, preferring Redis when reachable."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = Redis.from_url(settings.redis_url)
            client.ping()
        except RedisError as exc:
            logger.warning("redis throttle unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("provisioning throttle configured for redis backend")
            return RedisSlidingWindowThrottle(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("provisioning throttle using in-memory backend")
    return SlidingWindowThrottle(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
