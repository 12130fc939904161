"""
Tests for core.locks — DB-backed named locks.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.locks.errors import LockTimeout
from core.locks.models import NamedLock
from core.locks.service import acquire_lock, is_locked, named_lock, release_lock
from core.time.clock import FixedClock

pytestmark = pytest.mark.django_db(transaction=True)


def _clock():
    return FixedClock(datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc))


def test_acquire_and_release_round_trip() -> None:
    clock = _clock()
    token = acquire_lock("master_order_account_a", timeout=0, ttl=30, clock=clock)

    assert token is not None
    assert is_locked("master_order_account_a", clock=clock)
    assert release_lock("master_order_account_a", token) is True
    assert not is_locked("master_order_account_a", clock=clock)
    assert NamedLock.objects.count() == 0


def test_second_acquire_fails_while_held() -> None:
    clock = _clock()
    first = acquire_lock("busy", timeout=0, ttl=30, clock=clock)
    second = acquire_lock("busy", timeout=0.05, ttl=30, clock=clock, poll_interval=0.01)

    assert first is not None
    assert second is None


def test_expired_lock_is_taken_over() -> None:
    clock = _clock()
    stale = acquire_lock("crashed-worker", timeout=0, ttl=30, clock=clock)
    clock.advance(31)

    fresh = acquire_lock("crashed-worker", timeout=0, ttl=30, clock=clock)

    assert fresh is not None
    assert fresh != stale
    assert NamedLock.objects.get(name="crashed-worker").token == fresh


def test_release_with_foreign_token_is_refused() -> None:
    clock = _clock()
    token = acquire_lock("owned", timeout=0, ttl=30, clock=clock)

    assert release_lock("owned", "not-the-holder") is False
    assert is_locked("owned", clock=clock)
    assert release_lock("owned", token) is True


def test_named_lock_releases_when_block_raises() -> None:
    clock = _clock()
    with pytest.raises(RuntimeError):
        with named_lock("guarded", timeout=0, ttl=30, clock=clock):
            assert is_locked("guarded", clock=clock)
            raise RuntimeError("boom")

    assert not is_locked("guarded", clock=clock)


def test_named_lock_times_out() -> None:
    clock = _clock()
    acquire_lock("contended", timeout=0, ttl=30, clock=clock)

    with pytest.raises(LockTimeout) as excinfo:
        with named_lock("contended", timeout=0, ttl=30, clock=clock):
            pass  # pragma: no cover

    assert excinfo.value.name == "contended"


def test_rejects_non_positive_ttl() -> None:
    with pytest.raises(ValueError, match="ttl"):
        acquire_lock("bad", timeout=0, ttl=0)
