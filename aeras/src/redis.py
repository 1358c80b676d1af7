from contextlib import contextmanager
from redis import Redis
from typing import Iterator, Optional
from redis.lock import Lock

from aeras.src import exceptions
from aeras.src.constants import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_PASSWORD,
    MUTEX_LOCK_TIMEOUT,
    MUTEX_LOCK_MAX_WAIT_TIME,
)

# Redis client (single connection)
redisClient = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    decode_responses=True,
)


def acquireLock(
    tableName: str,
    timeOut: int = MUTEX_LOCK_TIMEOUT,
    blockingTimeOut: int = MUTEX_LOCK_MAX_WAIT_TIME,
) -> Lock:
    """
    Acquire a Redis-based mutex lock for a table.

    Used by the background jobs so that only one instance sweeps rides or
    expires points at a time. Ride acceptance never takes this lock.

    Args:
        tableName (str): Name of the table/resource to lock.
        timeOut (int): Lock expiration in seconds (auto-released after this).
        blockingTimeOut (int): Maximum time (in seconds) to wait for lock acquisition.

    Returns:
        Lock: A Redis lock object if successfully acquired.

    Raises:
        exceptions.LockAcquireTimeout: If the lock could not be acquired within blockingTimeOut.
    """
    lock = redisClient.lock(f"lock:{tableName}", timeout=timeOut)
    if lock.acquire(blocking=True, blocking_timeout=blockingTimeOut):
        return lock
    raise exceptions.LockAcquireTimeout()


def releaseLock(lock: Optional[Lock]) -> None:
    """
    Release a previously acquired Redis lock.

    Does nothing for a missing lock or one no longer owned by this process
    (e.g. after it expired).
    """
    if lock and lock.locked() and lock.owned():
        lock.release()


@contextmanager
def mutex(tableName: str, timeOut: int = MUTEX_LOCK_TIMEOUT) -> Iterator[Lock]:
    """Hold the table mutex for the duration of a `with` block."""
    lock = None
    try:
        lock = acquireLock(tableName, timeOut=timeOut)
        yield lock
    finally:
        releaseLock(lock)
