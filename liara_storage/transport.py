from __future__ import annotations
"""HTTP transport with bearer authentication and bounded retries."""
import logging
import time
from typing import Any, Callable, Mapping, Optional

import httpx

from .config import ClientConfig, RetryPolicy
from .errors import RejectedError, TransportError
from .package_info import default_user_agent

LOGGER = logging.getLogger(__name__)

ContentFactory = Callable[[], Any]

RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class HttpTransport:
    """Owns an :class:`httpx.Client` and applies the retry policy to each exchange.

    Responses with a 4xx status are turned into :class:`RejectedError` right
    away (``404`` is handed back to the caller when ``not_found_ok`` is set).
    5xx responses and network failures are retried with exponential backoff and
    surface as :class:`TransportError` once ``RetryPolicy.max_attempts`` is used
    up.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        client_factory: Callable[..., httpx.Client] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config
        self._retry: RetryPolicy = config.retry
        self._sleep = sleep
        factory = client_factory or httpx.Client
        self._client = factory(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.auth_token}",
                "User-Agent": config.user_agent or default_user_agent(),
                "Accept": "application/json",
            },
            timeout=config.timeout,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        content: Any = None,
        stream: bool = False,
        not_found_ok: bool = False,
        replayable: bool = True,
    ) -> httpx.Response:
        """Send one logical request, retrying transient failures.

        ``content`` may be a callable; it is invoked once per attempt so that
        streamed bodies can be rewound. When ``replayable`` is false the request
        is attempted exactly once. With ``stream=True`` the caller owns the
        returned response and must close it.
        """

        attempts = self._retry.max_attempts if replayable else 1
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                delay = self._retry.delay_for(attempt)
                LOGGER.warning(
                    "Retrying %s %s in %.2fs (attempt %d/%d)", method, path, delay, attempt, attempts
                )
                if delay:
                    self._sleep(delay)

            body = content() if callable(content) else content
            request = self._client.build_request(
                method,
                path,
                params=_clean_params(params),
                headers=dict(headers or {}),
                json=json,
                content=body,
            )
            LOGGER.debug("%s %s (attempt %d/%d)", method, request.url, attempt, attempts)
            try:
                response = self._client.send(request, stream=stream)
            except RETRY_EXCEPTIONS as exc:
                if attempt < attempts:
                    LOGGER.warning("%s %s failed with %s", method, path, type(exc).__name__)
                    continue
                raise TransportError(
                    f"{method} {path} failed after {attempt} attempt(s): {exc}",
                    attempts=attempt,
                ) from exc
            except httpx.TransportError as exc:
                raise TransportError(f"{method} {path} failed: {exc}", attempts=attempt) from exc

            status = response.status_code
            if self._retry.should_retry_status(status):
                detail = _drain_text(response)
                if attempt < attempts:
                    LOGGER.warning("%s %s returned status %d", method, path, status)
                    continue
                raise TransportError(
                    f"{method} {path} returned status {status} after {attempt} attempt(s)"
                    + (f": {detail}" if detail else ""),
                    attempts=attempt,
                    status_code=status,
                )
            if status == 404 and not_found_ok:
                return response
            if status >= 400:
                raise RejectedError(status, _drain_text(response), method=method, url=str(request.url))
            return response

        raise TransportError(f"{method} {path} was not attempted", attempts=0)  # pragma: no cover


def _clean_params(params: Optional[Mapping[str, Any]]) -> dict[str, Any] | None:
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None and value != ""}


def _drain_text(response: httpx.Response) -> str:
    try:
        response.read()
        return response.text
    except httpx.HTTPError:
        return ""
    finally:
        response.close()
