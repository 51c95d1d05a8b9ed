import asyncio

import pytest

from greenlight.rate_limiter import RateLimiterRegistry, TokenBucket


@pytest.mark.asyncio
async def test_burst_allowed_then_blocks(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=3, clock=clock)
    assert [await limiter.allow("1.2.3.4") for _ in range(3)] == [True, True, True]
    # Bucket is empty; the next immediate request is rejected
    assert not await limiter.allow("1.2.3.4")


@pytest.mark.asyncio
async def test_one_token_replenished_after_refill_interval(clock):
    limiter = RateLimiterRegistry(rate_per_sec=4, burst=2, clock=clock)
    assert await limiter.allow("client")
    assert await limiter.allow("client")
    assert not await limiter.allow("client")
    clock.advance(0.25)
    assert await limiter.allow("client")
    assert not await limiter.allow("client")


@pytest.mark.asyncio
async def test_example_sequence(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=2, clock=clock)
    results = [await limiter.allow("k"), await limiter.allow("k"), await limiter.allow("k")]
    clock.advance(1.0)
    results.append(await limiter.allow("k"))
    assert results == [True, True, False, True]


@pytest.mark.asyncio
async def test_keys_do_not_interfere(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=1, clock=clock)
    assert await limiter.allow("a")
    assert not await limiter.allow("a")
    assert await limiter.allow("b")
    assert len(limiter) == 2


@pytest.mark.asyncio
async def test_tokens_capped_at_capacity_after_long_idle(clock):
    limiter = RateLimiterRegistry(rate_per_sec=10, burst=2, clock=clock, idle_threshold=10_000)
    assert await limiter.allow("k")
    clock.advance(60)
    assert await limiter.allow("k")
    assert await limiter.allow("k")
    assert not await limiter.allow("k")


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [2, 10, 100])
async def test_concurrent_allow_never_over_admits(concurrency):
    limiter = RateLimiterRegistry(rate_per_sec=0.001, burst=1)
    results = await asyncio.gather(*(limiter.allow("same") for _ in range(concurrency)))
    assert results.count(True) == 1
    assert results.count(False) == concurrency - 1
    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_disabled_limiter_always_allows_and_tracks_nothing(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=1, enabled=False, clock=clock)
    assert all([await limiter.allow("k") for _ in range(20)])
    assert len(limiter) == 0


@pytest.mark.asyncio
async def test_sweep_evicts_idle_and_resets_state(clock):
    limiter = RateLimiterRegistry(rate_per_sec=0.001, burst=2, idle_threshold=180, clock=clock)
    assert await limiter.allow("idle")
    assert await limiter.allow("idle")
    assert not await limiter.allow("idle")

    clock.advance(181)
    assert await limiter.sweep() == 1
    assert "idle" not in limiter

    # A returning client starts with a full bucket, not the exhausted one
    assert await limiter.allow("idle")
    assert await limiter.allow("idle")
    assert not await limiter.allow("idle")


@pytest.mark.asyncio
async def test_sweep_keeps_recent_buckets(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=1, idle_threshold=180, clock=clock)
    await limiter.allow("old")
    clock.advance(120)
    await limiter.allow("recent")
    clock.advance(90)
    assert await limiter.sweep() == 1
    assert "old" not in limiter
    assert "recent" in limiter


@pytest.mark.asyncio
async def test_sweep_loop_runs_until_stopped(clock):
    limiter = RateLimiterRegistry(rate_per_sec=1, burst=1, eviction_interval=0.01, idle_threshold=5, clock=clock)
    await limiter.allow("k")
    clock.advance(10)
    limiter.start()
    await asyncio.sleep(0.05)
    assert len(limiter) == 0
    await limiter.stop()
    assert limiter._sweeper is None
    # Stopping twice is harmless
    await limiter.stop()


@pytest.mark.asyncio
async def test_real_clock_refill():
    limiter = RateLimiterRegistry(rate_per_sec=20, burst=1)
    assert await limiter.allow("tool")
    assert not await limiter.allow("tool")
    await asyncio.sleep(0.06)
    assert await limiter.allow("tool")


def test_token_bucket_consume_updates_timestamps():
    bucket = TokenBucket(rate=1, capacity=1, now=0.0)
    assert bucket.consume(0.5)
    assert bucket.last_seen == 0.5
    assert not bucket.consume(0.7)
    assert bucket.last_refill == 0.7
    assert bucket.tokens == pytest.approx(0.2)
