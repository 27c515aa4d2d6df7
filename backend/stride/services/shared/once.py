"""Run-once memo for idempotent initializers."""

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Once:
    """Run a callable at most once per instance.

    Concurrent callers block until the first run finishes and then share its
    result. A failed run is remembered as done (its exception is logged, the
    result is None) so callers are never stuck retrying a broken bootstrap.
    reset() re-arms the instance for tests.
    """

    def __init__(self, func: Callable[[], Any], name: str | None = None):
        self._func = func
        self._name = name or getattr(func, "__name__", "once")
        self._lock = threading.Lock()
        self._done = False
        self._result: Any = None

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> Any:
        if self._done:
            return self._result
        with self._lock:
            if not self._done:
                try:
                    self._result = self._func()
                except Exception:
                    logger.exception(f"Initializer '{self._name}' failed")
                    self._result = None
                self._done = True
        return self._result

    def reset(self) -> None:
        with self._lock:
            self._done = False
            self._result = None
