"""HTTP session for the realtime database REST API.

Pattern: requests.Session with urllib3 status retries and connection
pooling, plus tenacity retries with exponential backoff for connection
errors, timeouts and retryable HTTP errors. GET, PUT and PATCH are retried.
POST creates a new document, so it is sent exactly once: a lost response
cannot turn into a second write.
"""
import logging
from typing import Callable, Iterable

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential
)
from urllib3.util.retry import Retry

from clinic_slots import config
from clinic_slots.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

WRAPPED_METHODS = ("get", "put", "patch")

SINGLE_ATTEMPT_METHODS = ("post",)


def is_retryable(exc: BaseException) -> bool:
    """Connection errors, timeouts and 429/5xx responses; never other 4xx."""
    if isinstance(exc, requests.exceptions.HTTPError):
        response = exc.response
        return response is None or response.status_code in RETRY_STATUSES
    return isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout))


def is_outage(exc: BaseException) -> bool:
    """Errors that say the database is unhealthy; a plain 4xx answer is not one."""
    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return not (400 <= status < 500) or status == 429
    return True


def _with_retry(
    send: Callable,
    attempts: int,
    wait_multiplier: float,
    wait_max: float,
    timeout: float
) -> Callable:
    """Wrap a bound session method with timeout, raise_for_status and backoff."""

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=wait_multiplier, min=wait_multiplier, max=wait_max),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def send_with_retry(*args, **kwargs):
        kwargs.setdefault("timeout", timeout)
        response = send(*args, **kwargs)
        response.raise_for_status()
        return response

    return send_with_retry


def create_http_session(
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    timeout: float = config.HTTP_TIMEOUT_SECONDS,
    wait_multiplier: float = 1.0,
    wait_max: float = 8.0,
    methods: Iterable[str] = WRAPPED_METHODS,
    single_attempt_methods: Iterable[str] = SINGLE_ATTEMPT_METHODS
) -> requests.Session:
    """
    Create a pooled session whose verbs retry with exponential backoff.

    Args:
        max_retries: Retries after the first attempt (default: 3, so 4 tries)
        backoff_factor: urllib3 backoff for 429/5xx responses
        timeout: Per-request timeout in seconds
        wait_multiplier: tenacity backoff base; delays are 1s, 2s, 4s by default
        wait_max: Longest single backoff delay
        methods: Session verbs to wrap with retries
        single_attempt_methods: Verbs that get the timeout and
            raise_for_status but are never retried

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=sorted(RETRY_STATUSES),
        allowed_methods=["GET", "PUT", "PATCH"],
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    for name in methods:
        setattr(
            session,
            name,
            _with_retry(
                getattr(session, name),
                attempts=max_retries + 1,
                wait_multiplier=wait_multiplier,
                wait_max=wait_max,
                timeout=timeout
            )
        )

    for name in single_attempt_methods:
        setattr(
            session,
            name,
            _with_retry(
                getattr(session, name),
                attempts=1,
                wait_multiplier=wait_multiplier,
                wait_max=wait_max,
                timeout=timeout
            )
        )

    return session


def create_circuit_breaker() -> CircuitBreaker:
    """Breaker shared by every call a client makes to one database."""
    return CircuitBreaker(failure_threshold=5, cooldown=60, is_failure=is_outage)
