from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from services.errors import Conflict


LOCK_TIMEOUT_SECONDS = float(os.environ.get("TOOL_TRACKER_LOCK_TIMEOUT_SECONDS") or "5")

_REGISTRY_LOCK = threading.Lock()
_KEY_LOCKS: dict[tuple[str, int], threading.Lock] = {}


def _lock_for(kind: str, key: int) -> threading.Lock:
    with _REGISTRY_LOCK:
        lock = _KEY_LOCKS.get((kind, key))
        if lock is None:
            lock = threading.Lock()
            _KEY_LOCKS[(kind, key)] = lock
        return lock


@contextmanager
def serialized(kind: str, key: int, timeout: float | None = None) -> Iterator[None]:
    lock = _lock_for(kind, int(key))
    wait = LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    if not lock.acquire(timeout=max(wait, 0.0)):
        raise Conflict(
            f"{kind.capitalize()} {key} is busy with another request. Try again.",
            details={kind + "ID": int(key)},
        )
    try:
        yield
    finally:
        lock.release()


def tool_lock(tool_id: int, timeout: float | None = None):
    return serialized("tool", tool_id, timeout)


def supply_lock(supply_id: int, timeout: float | None = None):
    return serialized("supply", supply_id, timeout)
