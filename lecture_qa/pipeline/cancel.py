"""Pipeline cancellation helpers.

Cancellation is an in-process signal keyed by lecture id: callers (API, CLI
signal handler) mark a lecture as canceled and the running stages poll the
marker between frames/events and while external processes run.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Optional, TypeVar

from lecture_qa.errors import PipelineCanceled

T = TypeVar("T")

POLL_INTERVAL_SEC = 0.2

_LOCK = threading.Lock()
_CANCELLED_LECTURE_IDS: set[str] = set()


def request_cancel(lecture_id: str) -> None:
    if lecture_id:
        with _LOCK:
            _CANCELLED_LECTURE_IDS.add(str(lecture_id))


def clear_cancel(lecture_id: str) -> None:
    if lecture_id:
        with _LOCK:
            _CANCELLED_LECTURE_IDS.discard(str(lecture_id))


def is_cancel_requested(lecture_id: Optional[str]) -> bool:
    if not lecture_id:
        return False
    with _LOCK:
        return str(lecture_id) in _CANCELLED_LECTURE_IDS


def raise_if_cancel_requested(lecture_id: Optional[str]) -> None:
    if is_cancel_requested(lecture_id):
        raise PipelineCanceled(f"lecture {lecture_id} canceled")


def run_cancellable(
    fn: Callable[..., T],
    *args: Any,
    lecture_id: Optional[str],
    poll_interval: float = POLL_INTERVAL_SEC,
    **kwargs: Any,
) -> T:
    """
    Run a blocking call on a worker thread and wait for it while polling the
    cancel marker. On cancel the caller gets PipelineCanceled right away; the
    worker cannot be interrupted and its result is discarded when it returns.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cancellable")
    future = executor.submit(fn, *args, **kwargs)
    try:
        while True:
            try:
                return future.result(timeout=poll_interval)
            except FutureTimeout:
                if future.done():
                    # the call itself raised a timeout
                    raise
                raise_if_cancel_requested(lecture_id)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
