"""Fixed-interval bounded retry for eventually consistent cluster checks."""
import logging
from typing import Any, Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from .errors import RetryExhaustedError

logger = logging.getLogger("kubeboot.kubeadm.retry")


def retry_after(
    attempts: int,
    action: Callable[[], Any],
    interval: float,
    is_success: Optional[Callable[[Any], bool]] = None,
    sleep: Optional[Callable[[float], None]] = None
) -> Any:
    """Call ``action`` until it succeeds, at most ``attempts`` times.

    An attempt fails when ``action`` raises, or when ``is_success`` is given
    and returns False for its result. Attempts are spaced ``interval``
    seconds apart.

    Returns:
        The result of the first successful attempt

    Raises:
        RetryExhaustedError: After the last failed attempt, chained to the last
            exception raised by ``action`` if there was one
    """
    retry = retry_if_exception_type(Exception)
    if is_success is not None:
        retry = retry | retry_if_result(lambda r: not is_success(r))

    kwargs = {}
    if sleep is not None:
        kwargs['sleep'] = sleep

    retryer = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(interval),
        retry=retry,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        **kwargs
    )
    try:
        return retryer(action)
    except RetryError as e:
        last = e.last_attempt
        cause = last.exception() if last.failed else None
        raise RetryExhaustedError(
            f"gave up after {attempts} attempts: {cause if cause else 'check did not succeed'}",
            attempts=attempts,
        ) from cause
