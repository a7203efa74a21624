import time
from unittest.mock import patch

import pytest

from slack_archive.models.config import ArchiveConfig
from slack_archive.sources.ratelimiter import AdaptiveRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = time.time()
        self.sleeps = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    fake = FakeClock()
    with patch("slack_archive.sources.ratelimiter.time", fake):
        yield fake


def test_buckets_follow_config_tiers():
    limiter = AdaptiveRateLimiter.for_config(ArchiveConfig(tier2_rpm=10, tier2_cap=12))

    assert limiter._get_bucket("conversations.list").target_rpm == 10.0
    assert limiter._get_bucket("conversations.history").target_rpm == 45.0
    assert limiter._get_bucket("users.info").target_rpm == 90.0
    # Unknown methods get a conservative bucket
    assert limiter._get_bucket("files.list").target_rpm == 18.0


def test_burst_then_pacing(clock):
    limiter = AdaptiveRateLimiter({"m": {"rpm": 60, "cap": 60, "burst": 2}})

    limiter.acquire("m")
    limiter.acquire("m")
    assert clock.sleeps == []

    limiter.acquire("m")
    assert len(clock.sleeps) == 1
    assert 1.0 <= clock.sleeps[0] <= 1.2


def test_rate_limited_bucket_waits_and_slows_down(clock):
    limiter = AdaptiveRateLimiter({"m": {"rpm": 60, "cap": 60, "burst": 5}})
    limiter.acquire("m")

    limiter.on_rate_limited("m", 5)
    bucket = limiter._get_bucket("m")
    assert bucket.target_rpm == 30.0
    assert bucket.burst_capacity == 1

    limiter.acquire("m")
    assert sum(clock.sleeps) >= 5
