import threading

import pytest

from webstack.web.ratelimit import RateLimiter


def test_burst_defaults_to_rate(clock):
    limiter = RateLimiter(5, clock=clock)
    assert limiter.burst == 5


def test_rejects_invalid_settings():
    with pytest.raises(ValueError):
        RateLimiter(0)
    with pytest.raises(ValueError):
        RateLimiter(2, burst=0)
    with pytest.raises(ValueError):
        RateLimiter(2, shards=0)


def test_burst_then_rejection(clock):
    limiter = RateLimiter(2, burst=2, clock=clock)
    assert limiter.allow('client')
    assert limiter.allow('client')
    assert not limiter.allow('client')


def test_refill_is_continuous(clock):
    limiter = RateLimiter(2, burst=2, clock=clock)
    limiter.allow('client')
    limiter.allow('client')
    assert not limiter.allow('client')

    clock.advance(0.25)
    assert not limiter.allow('client')
    clock.advance(0.25)
    assert limiter.allow('client')
    assert not limiter.allow('client')


def test_tokens_capped_at_burst(clock):
    limiter = RateLimiter(2, burst=3, clock=clock)
    limiter.allow('client')
    clock.advance(3600)
    assert limiter.tokens('client') == 3
    assert [limiter.allow('client') for _ in range(4)] == [True, True, True, False]


def test_rejected_requests_cost_nothing(clock):
    limiter = RateLimiter(1, burst=1, clock=clock)
    assert limiter.allow('client')
    for _ in range(10):
        assert not limiter.allow('client')
    assert limiter.tokens('client') >= 0
    clock.advance(1)
    assert limiter.allow('client')


def test_slow_client_is_never_rejected(clock):
    limiter = RateLimiter(2, burst=2, clock=clock)
    for _ in range(50):
        assert limiter.allow('client')
        clock.advance(0.5)


def test_two_per_second_sequence(clock):
    limiter = RateLimiter(2, clock=clock)
    results = [limiter.allow('client')]
    for _ in range(3):
        clock.advance(0.5)
        results.append(limiter.allow('client'))
    results.append(limiter.allow('client'))
    results.append(limiter.allow('client'))
    assert results == [True, True, True, True, True, False]

    clock.advance(1)
    assert [limiter.allow('client') for _ in range(3)] == [True, True, False]


def test_clients_are_independent(clock):
    limiter = RateLimiter(1, clock=clock)
    assert limiter.allow('10.0.0.1')
    assert not limiter.allow('10.0.0.1')
    assert limiter.allow('10.0.0.2')
    assert len(limiter) == 2


def test_evict_idle(clock):
    limiter = RateLimiter(1, idle_ttl=10, clock=clock)
    limiter.allow('old')
    clock.advance(6)
    limiter.allow('recent')
    clock.advance(5)

    assert limiter.evict_idle() == 1
    assert 'old' not in limiter
    assert 'recent' in limiter


def test_idle_buckets_swept_on_access(clock):
    limiter = RateLimiter(1, idle_ttl=10, shards=1, clock=clock)
    limiter.allow('old')
    clock.advance(11)
    limiter.allow('new')
    assert 'old' not in limiter
    assert len(limiter) == 1


def test_evicted_client_starts_with_full_bucket(clock):
    limiter = RateLimiter(1, idle_ttl=10, clock=clock)
    limiter.allow('client')
    clock.advance(20)
    limiter.evict_idle()
    assert limiter.tokens('client') is None
    assert limiter.allow('client')


def test_concurrent_admission_never_overspends(clock):
    # Frozen clock: no refill, so exactly `burst` requests may pass
    limiter = RateLimiter(1, burst=100, clock=clock)
    admitted = []
    lock = threading.Lock()

    def worker():
        count = sum(1 for _ in range(50) if limiter.allow('shared'))
        with lock:
            admitted.append(count)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(admitted) == 100
