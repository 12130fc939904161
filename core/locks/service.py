"""
MOA Core Locks — Acquire / Release
====================================
Database-backed named locks with a bounded wait.

Acquisition (one attempt):
    1. INSERT the lock row inside a savepoint.
    2. On primary-key conflict, take over the row only if it
       has expired (conditional UPDATE, row count decides).

The wait loop polls until the deadline. timeout=0 means a single
attempt, which is how short-lived "is someone already doing this"
guards are expressed.

Lock rows are written in their own savepoint so a caller's outer
transaction is never poisoned by the IntegrityError.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from django.db import IntegrityError, transaction

from core.locks.errors import LockTimeout
from core.locks.models import NamedLock
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("moa.locks")

DEFAULT_POLL_INTERVAL = 0.05


def _try_acquire(name: str, token: str, ttl: float, clock: Clock) -> bool:
    now = clock.now_utc()
    expires_at = now + timedelta(seconds=ttl)

    try:
        with transaction.atomic():
            NamedLock.objects.create(
                name=name,
                token=token,
                acquired_at=now,
                expires_at=expires_at,
            )
        return True
    except IntegrityError:
        pass

    taken_over = NamedLock.objects.filter(
        name=name,
        expires_at__lte=now,
    ).update(token=token, acquired_at=now, expires_at=expires_at)
    if taken_over:
        logger.warning(f"Lock '{name}' expired and was taken over.")
    return taken_over == 1


def acquire_lock(
    name: str,
    *,
    timeout: float,
    ttl: float,
    clock: Clock | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> str | None:
    """
    Try to acquire `name` for at most `timeout` seconds.

    Returns the holder token on success, None on timeout.
    """
    if ttl <= 0:
        raise ValueError("ttl must be positive.")
    clock = clock or get_default_clock()
    token = uuid.uuid4().hex
    deadline = time.monotonic() + max(timeout, 0)

    while True:
        if _try_acquire(name, token, ttl, clock):
            logger.debug(f"Lock '{name}' acquired.")
            return token
        if time.monotonic() >= deadline:
            logger.info(f"Lock '{name}' not acquired within {timeout:g}s.")
            return None
        time.sleep(poll_interval)


def release_lock(name: str, token: str) -> bool:
    """Release `name` if `token` still holds it. Returns True if released."""
    deleted, _ = NamedLock.objects.filter(name=name, token=token).delete()
    if not deleted:
        logger.warning(
            f"Lock '{name}' was no longer held by this token at release."
        )
    return deleted > 0


def is_locked(name: str, *, clock: Clock | None = None) -> bool:
    clock = clock or get_default_clock()
    return NamedLock.objects.filter(
        name=name,
        expires_at__gt=clock.now_utc(),
    ).exists()


@contextmanager
def named_lock(
    name: str,
    *,
    timeout: float,
    ttl: float,
    clock: Clock | None = None,
) -> Iterator[str]:
    """
    Hold `name` for the duration of the block.

    Raises LockTimeout if the lock is not acquired in time.
    Release always runs, whatever the block does.
    """
    token = acquire_lock(name, timeout=timeout, ttl=ttl, clock=clock)
    if token is None:
        raise LockTimeout(name, timeout)
    try:
        yield token
    finally:
        release_lock(name, token)
