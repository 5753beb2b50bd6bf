"""Fixed-interval retry with a hard attempt budget.

Used for reads of external objects that may not exist yet when a cluster is
first created. Waiting is cancellable so a missing dependency cannot hold up
the caller beyond its own deadline.
"""

import logging
import threading
import time
from collections.abc import Callable
from decimal import Decimal

from ..errors import RetryExhaustedError, SynthesisCancelled

logger = logging.getLogger(__name__)


def max_retries(interval: float, timeout: float) -> int:
    """
    Number of attempts that fit in the timeout.

    Computed on decimals so that 0.3 / 0.1 gives 3 rather than 2.

    Example:
        >>> max_retries(3, 10)
        3
    """
    return int(Decimal(str(timeout)) // Decimal(str(interval)))


def retry(
    operation: Callable[[], bool],
    interval: float,
    timeout: float,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> None:
    """Call an operation until it reports success.

    The operation returns True when done and False to be retried; any
    exception it raises propagates immediately.

    Args:
        operation: Callable returning True on success
        interval: Seconds between attempts
        timeout: Total budget; floor(timeout / interval) attempts are made
        cancel: Event that aborts the wait between attempts when set
        sleep: Replacement for the wait between attempts

    Raises:
        ValueError: If the timeout is shorter than the interval
        RetryExhaustedError: If no attempt succeeded
        SynthesisCancelled: If the cancel event was set while waiting
    """
    if timeout < interval:
        raise ValueError(f"timeout ({timeout}) should be greater than interval ({interval})")

    retries = max_retries(interval, timeout)
    for attempt in range(retries):
        if operation():
            return
        if attempt + 1 == retries:
            break

        logger.debug(f"attempt {attempt + 1}/{retries} failed, retrying in {interval}s")
        if sleep is not None:
            sleep(interval)
        elif cancel is not None:
            if cancel.wait(interval):
                raise SynthesisCancelled(f"cancelled after {attempt + 1} of {retries} attempts")
        else:
            time.sleep(interval)

        if cancel is not None and cancel.is_set():
            raise SynthesisCancelled(f"cancelled after {attempt + 1} of {retries} attempts")

    raise RetryExhaustedError(retries)
