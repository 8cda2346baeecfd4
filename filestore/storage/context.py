"""
Cancellable execution context passed through every storage operation.

A Context carries an optional deadline and a cancellation flag. Adapters use
run_with_context() so that a cancelled or expired context makes the caller
return promptly, even while the backend call itself is still running.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from filestore.storage.errors import (
    StorageCancelledError,
    StorageDeadlineExceededError,
    StorageError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Interval at which a waiting caller re-checks its context.
POLL_INTERVAL = 0.05

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


class Context:
    """
    Deadline and cancellation scope for a storage call.

    Usage:
        ctx = Context(timeout=5)
        store.upload("a.txt", fp, size, ctx=ctx)

        # From another thread:
        ctx.cancel()
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["Context"] = None):
        """
        Initialize a context.

        Args:
            timeout: Seconds from now until the deadline (None = no deadline)
            parent: Enclosing context; its cancellation and deadline also apply
        """
        self._parent = parent
        self._cancelled = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            if self._deadline is None or parent.deadline < self._deadline:
                self._deadline = parent.deadline

    @classmethod
    def background(cls) -> "Context":
        """A context that is never cancelled and has no deadline."""
        return cls()

    def with_timeout(self, seconds: float) -> "Context":
        """Derive a child context that expires after `seconds`."""
        return Context(timeout=seconds, parent=self)

    @property
    def deadline(self) -> Optional[float]:
        """Deadline as a time.monotonic() value, or None."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def error(self) -> Optional[StorageError]:
        """Return the error describing why the context is done, or None."""
        if self.cancelled:
            return StorageCancelledError("Operation cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return StorageDeadlineExceededError("Operation deadline exceeded")
        return None

    def done(self) -> bool:
        return self.error() is not None

    def raise_if_done(self) -> None:
        """Raise the cancellation error if the context is done."""
        err = self.error()
        if err is not None:
            raise err


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(thread_name_prefix="filestore-io")
        return _executor


def _release_late_result(future: Future, on_abandon: Callable[[Any], None]) -> None:
    """Hand a result that arrived after the caller gave up to `on_abandon`."""
    if future.cancelled() or future.exception() is not None:
        return
    try:
        on_abandon(future.result())
    except Exception:
        logger.exception("Failed to release abandoned storage call result")


def run_with_context(ctx: Optional[Context], func: Callable[..., T], *args: Any,
                     on_abandon: Optional[Callable[[T], None]] = None, **kwargs: Any) -> T:
    """
    Run a blocking call so that it honors the caller's context.

    With no context the call runs inline. Otherwise the call runs on a shared
    I/O pool while the caller waits in short polls; once the context is done
    the caller gets the context error immediately and the backend call is
    left to finish on its own.

    Args:
        ctx: Caller context (None = background)
        func: Blocking callable
        *args: Positional arguments for func
        on_abandon: Called with the result if func succeeds after the caller
            already gave up, so held resources (responses, connections) are
            released
        **kwargs: Keyword arguments for func

    Returns:
        The value returned by func

    Raises:
        StorageCancelledError: If the context was cancelled
        StorageDeadlineExceededError: If the context deadline passed
    """
    if ctx is None:
        return func(*args, **kwargs)

    ctx.raise_if_done()
    future = _get_executor().submit(func, *args, **kwargs)
    while True:
        wait_for = POLL_INTERVAL
        remaining = ctx.remaining()
        if remaining is not None:
            wait_for = min(wait_for, remaining)
        try:
            return future.result(timeout=wait_for)
        except FutureTimeoutError:
            err = ctx.error()
            if err is not None:
                if not future.cancel() and on_abandon is not None:
                    future.add_done_callback(
                        lambda done: _release_late_result(done, on_abandon))
                raise err
