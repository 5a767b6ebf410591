from typing import Callable, List, Optional, TypeVar

import requests
from google.api_core import exceptions as gax_exceptions
from google.auth import exceptions as google_auth_exceptions
from google.cloud import storage
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)

from .config import settings
from .exceptions import PermanentError, RetryableError
from .logging import jlog

T = TypeVar("T")

RETRYABLE_STORAGE_EXC = (
    gax_exceptions.TooManyRequests,
    gax_exceptions.InternalServerError,
    gax_exceptions.BadGateway,
    gax_exceptions.ServiceUnavailable,
    gax_exceptions.GatewayTimeout,
    gax_exceptions.DeadlineExceeded,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

# Instantiated lazily so tests and local runs need no credentials at import
_storage: Optional[storage.Client] = None

def _client() -> storage.Client:
    global _storage
    if _storage is None:
        try:
            _storage = storage.Client(project=settings.project_id) if settings.project_id else storage.Client()
        except google_auth_exceptions.DefaultCredentialsError as e:
            raise PermanentError(f"storage credentials unavailable: {e}") from e
    return _storage

def _call(op: str, fn: Callable[[], T]) -> T:
    """Run a storage call with bounded retries, mapped onto our error classes."""
    max_attempts = max(1, settings.storage_max_retries + 1)  # first try + retries
    backoff_base_s = max(0.01, settings.storage_backoff_base_ms / 1000.0)
    backoff_cap_s = max(backoff_base_s, settings.storage_backoff_cap_ms / 1000.0)

    def _before_sleep_log(retry_state):
        sleep_s = getattr(getattr(retry_state, "next_action", None), "sleep", None)
        err = None
        if retry_state.outcome and retry_state.outcome.failed:
            err = str(retry_state.outcome.exception())
        jlog(event="storage_retry", op=op, attempt=retry_state.attempt_number, wait_s=sleep_s, error=err)

    try:
        for attempt in Retrying(
            retry=retry_if_exception_type(RETRYABLE_STORAGE_EXC),
            stop=(stop_after_attempt(max_attempts) | stop_after_delay(settings.storage_retry_budget_s)),
            wait=wait_random_exponential(multiplier=backoff_base_s, max=backoff_cap_s),
            reraise=True,
            before_sleep=_before_sleep_log,
        ):
            with attempt:
                return fn()
    except gax_exceptions.NotFound as e:
        raise PermanentError(f"{op}: {e}") from e
    except RETRYABLE_STORAGE_EXC as e:
        raise RetryableError(f"{op}: {e}") from e
    except gax_exceptions.GoogleAPICallError as e:
        # Forbidden, BadRequest, PreconditionFailed, ...
        raise PermanentError(f"{op}: {e}") from e

def list_keys(bucket: str, prefix: str = "", max_keys: Optional[int] = None) -> List[str]:
    """Keys under ``prefix``, following every listing page.

    ``max_keys`` caps the result; a truncated listing is logged.
    """
    if not bucket:
        raise PermanentError("bucket name is required")

    def _list() -> List[str]:
        keys: List[str] = []
        for blob in _client().list_blobs(bucket, prefix=prefix or None):
            if blob.name.endswith("/"):
                continue
            if max_keys is not None and len(keys) >= max_keys:
                jlog(event="list_truncated", severity="WARNING", bucket=bucket, prefix=prefix, max_keys=max_keys)
                break
            keys.append(blob.name)
        return keys

    keys = _call("list", _list)
    jlog(event="list_ok", bucket=bucket, prefix=prefix, count=len(keys))
    return keys

def get_object(bucket: str, key: str) -> bytes:
    blob = _client().bucket(bucket).blob(key)
    return _call("get", blob.download_as_bytes)

def put_object(bucket: str, key: str, data: bytes) -> None:
    blob = _client().bucket(bucket).blob(key)
    _call("put", lambda: blob.upload_from_string(data, content_type="application/json"))
