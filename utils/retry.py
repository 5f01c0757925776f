# utils/retry.py
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from storefront.db import BackendFault


def backend_retry(**tenacity_kwargs):
    """
    Create a tenacity retry decorator for batch jobs reading the document store.

    Only used by offline jobs such as the static export. The visitor-facing
    read path never retries: one attempt per request, with the cache and the
    next request acting as the retry.

    Args:
        **tenacity_kwargs: Optional keyword arguments
            - attempts (int): Maximum number of attempts. Defaults to 3.

    Retry Behavior:
        - Retries on BackendFault only
        - Exponential backoff: min=1s, max=10s, multiplier=1
        - Re-raises the last BackendFault when attempts run out
    """
    return retry(
        stop=stop_after_attempt(tenacity_kwargs.get("attempts", 3)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(BackendFault),
        reraise=True,
    )
