from datetime import datetime, timedelta, timezone

from journal_auth.services.rate_limit import FixedWindowRateLimiter

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_allows_up_to_limit_within_window():
    limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60)
    assert [limiter.allow("1.1.1.1", T0) for _ in range(4)] == [True, True, True, False]
    assert limiter.allow("2.2.2.2", T0) is True


def test_window_resets_after_expiry():
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
    assert limiter.allow("k", T0)
    assert not limiter.allow("k", T0 + timedelta(seconds=59))
    assert limiter.allow("k", T0 + timedelta(seconds=60))


def test_sweep_drops_idle_keys():
    limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60)
    limiter.allow("old", T0)
    limiter.allow("new", T0 + timedelta(seconds=50))

    assert limiter.sweep(T0 + timedelta(seconds=70)) == 1
    assert len(limiter) == 1


def test_sweep_if_due_runs_once_per_window():
    limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60)
    limiter.allow("a", T0)
    assert limiter.sweep_if_due(T0 + timedelta(seconds=61)) == 1
    limiter.allow("b", T0)
    assert limiter.sweep_if_due(T0 + timedelta(seconds=62)) == 0
    assert len(limiter) == 1


def test_reset():
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
    limiter.allow("k", T0)
    limiter.reset("k")
    assert limiter.allow("k", T0)
