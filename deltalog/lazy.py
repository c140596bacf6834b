"""A value computed once, on first use."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class Lazy(Generic[T]):
    """Runs a function once and gives every caller its result or its error."""

    def __init__(self, compute: Callable[[], T]) -> None:
        self._compute = compute
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None
        self._error: BaseException | None = None

    def get(self) -> T:
        """Return the computed value, computing it on the first call.

        If the computation raised, every call raises the same exception.
        """
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._value = self._compute()
                    except Exception as exc:
                        self._error = exc
                    finally:
                        self._done = True
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]