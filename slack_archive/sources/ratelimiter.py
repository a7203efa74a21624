"""Adaptive, per-method rate limiter for Slack Web API usage.

Each Slack method belongs to a rate tier (https://docs.slack.dev/apis/web-api/rate-limits/).
The limiter keeps one token bucket per method, seeded from the tier of that
method:

- Pacing: a bucket holds up to `burst` tokens and refills at `rpm / 60` tokens
  per second. A call takes one token, sleeping until one is available.
- Backoff: on HTTP 429 the bucket halves its rpm (never below `min_rpm`),
  collapses its burst to 1 and refuses calls until `Retry-After` has elapsed.
- Recovery: after 120 s without a 429 the rpm grows by 10% up to `cap` and the
  burst widens by one up to its configured size.

The limiter is process-local. Archiving processes one channel at a time, so
there is a single caller per bucket.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from slack_archive.models.config import ArchiveConfig

logger = logging.getLogger(__name__)

METHOD_TIERS: Dict[str, int] = {
    "conversations.list": 2,
    "conversations.history": 3,
    "conversations.replies": 3,
    "bots.info": 3,
    "users.info": 4,
    "auth.test": 4,
}
"""Slack rate tier of every method the archiver calls."""

RECOVERY_WINDOW_SECONDS = 120.0


@dataclass
class _Bucket:
    """Token bucket for a single API method."""

    target_rpm: float
    cap_rpm: float
    burst_capacity: int
    min_rpm: float = 6.0
    recovery_max_burst: int = 0
    tokens: float = 0.0
    last_refill_ts: float = field(default_factory=time.time)
    next_allowed_after: float = 0.0
    healthy_since_ts: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.target_rpm = max(1.0, float(self.target_rpm))
        self.cap_rpm = max(self.target_rpm, float(self.cap_rpm))
        self.burst_capacity = max(1, int(self.burst_capacity))
        self.recovery_max_burst = self.burst_capacity
        self.tokens = float(self.burst_capacity)

    def refill(self, now: float) -> None:
        added = max(0.0, now - self.last_refill_ts) * self.target_rpm / 60.0
        if added > 0:
            self.tokens = min(float(self.burst_capacity), self.tokens + added)
            self.last_refill_ts = now

    def wait_time(self, now: float) -> float:
        """Take a token if possible; otherwise return the seconds to wait for one."""
        self.refill(now)
        if now < self.next_allowed_after:
            return self.next_allowed_after - now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return 0.0
        return (1.0 - self.tokens) / (self.target_rpm / 60.0)

    def back_off(self, wait_seconds: float) -> None:
        now = time.time()
        self.healthy_since_ts = now
        new_rpm = max(self.min_rpm, self.target_rpm * 0.5)
        if new_rpm < self.target_rpm:
            logger.info(f"Limiter backoff: rpm {self.target_rpm:.2f} -> {new_rpm:.2f}")
        self.target_rpm = new_rpm
        self.burst_capacity = 1
        self.tokens = min(self.tokens, 1.0)
        self.next_allowed_after = max(self.next_allowed_after, now + wait_seconds)

    def maybe_recover(self, now: float) -> None:
        if now - self.healthy_since_ts < RECOVERY_WINDOW_SECONDS:
            return
        increased = min(self.cap_rpm, self.target_rpm * 1.10)
        if increased > self.target_rpm:
            logger.debug(f"Limiter recovery: rpm {self.target_rpm:.2f} -> {increased:.2f}")
            self.target_rpm = increased
        if self.burst_capacity < self.recovery_max_burst:
            self.burst_capacity += 1
        self.healthy_since_ts = now


class AdaptiveRateLimiter:
    """Per-method token buckets with backoff on 429 and gradual recovery.

    Args:
        defaults: Mapping of method -> {"rpm": float, "cap": float, "burst": int}.
            Methods without an entry get a conservative Tier 2 bucket on first use.
    """

    def __init__(self, defaults: Dict[str, Dict[str, float]]):
        self._defaults = defaults
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    @classmethod
    def for_config(cls, config: ArchiveConfig) -> "AdaptiveRateLimiter":
        """Build a limiter whose buckets follow the tier targets in `config`."""
        tiers = {
            2: {"rpm": config.tier2_rpm, "cap": config.tier2_cap, "burst": 5},
            3: {"rpm": config.tier3_rpm, "cap": config.tier3_cap, "burst": 10},
            4: {"rpm": config.tier4_rpm, "cap": config.tier4_cap, "burst": 20},
        }
        return cls(defaults={method: tiers[tier] for method, tier in METHOD_TIERS.items()})

    def _get_bucket(self, method: str) -> _Bucket:
        with self._lock:
            bucket = self._buckets.get(method)
            if bucket is None:
                cfg = self._defaults.get(method, {"rpm": 18.0, "cap": 24.0, "burst": 5})
                bucket = _Bucket(
                    target_rpm=float(cfg.get("rpm", 18.0)),
                    cap_rpm=float(cfg.get("cap", 24.0)),
                    burst_capacity=int(cfg.get("burst", 5)),
                )
                self._buckets[method] = bucket
            return bucket

    def acquire(self, method: str) -> None:
        """Block until a request for `method` may proceed."""
        bucket = self._get_bucket(method)
        while True:
            now = time.time()
            bucket.maybe_recover(now)
            sleep_needed = bucket.wait_time(now)
            if sleep_needed <= 0:
                return
            # 50-150 ms of jitter so wakes do not line up
            total_sleep = sleep_needed + random.uniform(0.05, 0.15)
            logger.debug(
                f"[{method}] pacing: sleeping {total_sleep:.3f}s "
                f"(rpm {bucket.target_rpm:.2f}, burst {bucket.burst_capacity}, tokens {bucket.tokens:.2f})"
            )
            time.sleep(total_sleep)

    def on_rate_limited(self, method: str, wait_seconds: Optional[float]) -> None:
        """Record an HTTP 429 for `method`, honoring its Retry-After value."""
        if wait_seconds is None or wait_seconds <= 0:
            wait_seconds = 1
        self._get_bucket(method).back_off(float(wait_seconds))
