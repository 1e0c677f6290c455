"""Bounded retry/backoff for calls to external collaborators."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lecture_qa.config import RetryConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)


def build_retrying(
    retry_cfg: RetryConfig,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    log: logging.Logger = logger,
) -> Retrying:
    """``retry_if`` (a predicate on the raised error) takes precedence over ``retry_on``."""
    retry = retry_if_exception(retry_if) if retry_if is not None else retry_if_exception_type(retry_on)
    return Retrying(
        stop=stop_after_attempt(retry_cfg.attempts),
        wait=wait_exponential(multiplier=1, min=retry_cfg.backoff_min_sec, max=retry_cfg.backoff_max_sec),
        retry=retry,
        before_sleep=before_sleep_log(log, logging.WARNING),
        reraise=True,
    )


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    retry_cfg: RetryConfig,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """Run ``fn(*args, **kwargs)`` under the configured attempts/backoff, re-raising the last error."""
    return build_retrying(retry_cfg, retry_on=retry_on)(fn, *args, **kwargs)
