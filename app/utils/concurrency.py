"""
Concurrency utilities.

Provides a `synchronized` decorator that runs a method while holding the
instance's ``_lock``. Shared state objects (the motor model, the debounce gate)
expose only decorated accessors so that no caller can touch their fields
without the lock.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable


def synchronized(method: Callable) -> Callable:
    """Decorator that acquires ``self._lock`` around the call."""

    @wraps(method)
    def _wrapped(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return _wrapped
