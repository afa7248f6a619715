"""Classification of provider exceptions into retry categories.

This mapping is the integration point with the provider's error contract.
When the SDK adds exception types or the API changes status codes, update
``FAILURE_BY_STATUS`` and ``classify_failure`` together with their tests.
"""

from __future__ import annotations

import asyncio

import anthropic

from latex_tailor.errors import ProviderError, ProviderFailure

FAILURE_BY_STATUS: dict[int, ProviderFailure] = {
    400: ProviderFailure.FATAL,  # malformed request
    401: ProviderFailure.FATAL,  # bad credential
    403: ProviderFailure.FATAL,  # credential lacks access
    404: ProviderFailure.FATAL,  # unknown model
    408: ProviderFailure.OVERLOADED,
    413: ProviderFailure.FATAL,
    429: ProviderFailure.QUOTA_EXCEEDED,
    500: ProviderFailure.OVERLOADED,
    502: ProviderFailure.OVERLOADED,
    503: ProviderFailure.OVERLOADED,
    504: ProviderFailure.OVERLOADED,
    529: ProviderFailure.OVERLOADED,  # provider "overloaded_error"
}


def classify_status(status_code: int) -> ProviderFailure:
    """Map an HTTP status from the provider to a failure kind."""
    failure = FAILURE_BY_STATUS.get(status_code)
    if failure is not None:
        return failure
    if status_code >= 500:
        return ProviderFailure.OVERLOADED
    return ProviderFailure.FATAL


def classify_failure(exc: BaseException) -> ProviderFailure:
    """Map an exception raised by a provider call to a failure kind."""
    if isinstance(exc, ProviderError):
        return exc.failure
    if isinstance(exc, anthropic.APIStatusError):
        return classify_status(exc.status_code)
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(exc, (anthropic.APIConnectionError, asyncio.TimeoutError)):
        return ProviderFailure.OVERLOADED
    return ProviderFailure.FATAL


def describe_failure(exc: BaseException) -> str:
    """Short human-readable description of a provider failure."""
    if isinstance(exc, anthropic.APIStatusError):
        return f"HTTP {exc.status_code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"
