"""HTTP collaborator with pooled connections, retry, and deadline-capped timeouts.

This module provides :class:`HttpClient`, the blocking client REST-style
plugins (http, slack, teams, ...) use to reach their APIs. It wraps a single
:class:`httpx.Client` per process and layers on:

- **Deadline capping** -- each request's timeout is the smaller of the
  requested timeout and the time left on the invocation deadline.
- **Retry with backoff** -- idempotent methods are retried on 5xx and
  network errors with exponential delay (1 s, 2 s, 4 s, ...), never sleeping
  past the deadline. Other methods (POST, PATCH) are only retried when the
  connection could not be established, so a request is never sent twice.
- **Failure mapping** -- transport failures become
  :class:`~actionpack.exceptions.ActionFailed`. HTTP error statuses are *not*
  failures here; the handler decides what a 4xx means for its action.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from actionpack.deadline import Deadline
from actionpack.exceptions import ActionFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})

# Failures raised before any bytes of the request were sent.
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class HttpClient:
    """Synchronous HTTP client for plugin handlers.

    Use as a context manager, or call :meth:`close` when done; the runtime
    closes the client owned by an :class:`~actionpack.context.ActionContext`
    after dispatch.

    Args:
        deadline: Invocation deadline bounding every request and retry.
        retries: Extra attempts after a retryable failure (see
            :meth:`request`).
        timeout: Default per-request timeout in seconds.
        backoff: Base delay in seconds; attempt *n* waits ``backoff * 2**n``.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).

    Example::

        with HttpClient(retries=0) as client:
            response = client.get("https://api.example.com/status")
    """

    def __init__(
        self,
        deadline: Optional[Deadline] = None,
        retries: int = 2,
        timeout: float = DEFAULT_TIMEOUT,
        backoff: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._deadline = deadline or Deadline.never()
        self._retries = retries
        self._timeout = timeout
        self._backoff = backoff
        self._client = httpx.Client(follow_redirects=True, transport=transport)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        content: Optional[str] = None,
        auth: Optional[tuple[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send a request, retrying failures that are safe to repeat.

        GET, HEAD, PUT, DELETE and OPTIONS are retried on 5xx responses and
        on any network error. Other methods are retried only when the
        connection failed, since the server may already have acted on them.

        Args:
            method: HTTP method (GET, POST, ...).
            url: Absolute request URL.
            headers: Request headers.
            params: Query parameters.
            json_body: JSON-serialisable body.
            content: Raw string body (ignored when *json_body* is set).
            auth: ``(username, password)`` for basic auth.
            timeout: Per-request timeout; defaults to the client's timeout.
                ``0`` means no per-request timeout.

        Returns:
            The final :class:`httpx.Response`, whatever its status code.

        Raises:
            ActionFailed: If the URL is invalid, the deadline has passed, or
                the request still fails at transport level after all retries.
        """
        method = method.upper()
        idempotent = method in IDEMPOTENT_METHODS
        per_request: Optional[float] = self._timeout
        if timeout is not None:
            # 0 disables the per-request timeout; the deadline still applies.
            per_request = timeout if timeout > 0 else None
        kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": headers or {},
            "params": params,
            "auth": auth,
        }
        if json_body is not None:
            kwargs["json"] = json_body
        elif content is not None:
            kwargs["content"] = content

        for attempt in range(self._retries + 1):
            request_timeout = self._deadline.cap(per_request)
            if request_timeout is not None and request_timeout <= 0:
                raise ActionFailed(f"request failed: deadline exceeded for {url}")

            try:
                response = self._client.request(timeout=request_timeout, **kwargs)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
                raise ActionFailed(f"invalid request: {exc}") from exc
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                retryable = idempotent or isinstance(exc, _UNSENT_ERRORS)
                if retryable and attempt < self._retries and self._sleep_before_retry(attempt):
                    logger.info(
                        "Connection error: %s, retrying (attempt %d/%d)",
                        exc, attempt + 1, self._retries,
                    )
                    continue
                raise ActionFailed(f"request failed: {exc}") from exc
            except httpx.HTTPError as exc:
                raise ActionFailed(f"request failed: {exc}") from exc

            if response.status_code >= 500 and idempotent and attempt < self._retries:
                if self._sleep_before_retry(attempt):
                    logger.info(
                        "Server error %d, retrying (attempt %d/%d)",
                        response.status_code, attempt + 1, self._retries,
                    )
                    continue
            return response

        raise ActionFailed(f"request failed after {self._retries + 1} attempts")  # pragma: no cover

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _sleep_before_retry(self, attempt: int) -> bool:
        """Wait before the next attempt; ``False`` if the deadline forbids it."""
        delay = self._backoff * (2 ** attempt)
        left = self._deadline.remaining()
        if left is not None and delay >= left:
            return False
        if delay > 0:
            time.sleep(delay)
        return True


def describe_response(response: httpx.Response) -> dict[str, Any]:
    """Summarise a response as action result fields.

    Returns ``status_code``, ``headers`` (one value per name), ``content``
    and, when the response declares a JSON content type and parses, ``json``.
    """
    result: dict[str, Any] = {
        "status_code": response.status_code,
        "headers": {key: response.headers[key] for key in response.headers.keys()},
        "content": response.text,
    }
    content_type = response.headers.get("content-type", "")
    if response.content and "json" in content_type:
        try:
            result["json"] = response.json()
        except ValueError:
            logger.debug("Response declared JSON but did not parse")
    return result
