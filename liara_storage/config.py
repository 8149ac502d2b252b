from __future__ import annotations
"""Client configuration."""
from dataclasses import dataclass, field
from enum import Enum
import os
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.liara.ir"
DEFAULT_TIMEOUT = 30.0

ENV_PREFIX = "LIARA_STORAGE_"


class ApiRevision(str, Enum):
    """Revisions of the object API, each with its own path layout."""

    V1 = "v1"
    V2 = "v2"

    @property
    def requires_namespace(self) -> bool:
        return self is ApiRevision.V2

    def root_path(self, namespace: str | None) -> str:
        if self is ApiRevision.V2:
            return f"/v2/storage/{namespace}"
        return "/v1/storage"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient failures.

    ``max_attempts`` counts the initial attempt. The delay before attempt ``n``
    (1-based, ``n > 1``) is ``backoff_factor * 2 ** (n - 2)`` capped at
    ``max_backoff``.
    """

    max_attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.backoff_factor < 0 or self.max_backoff < 0:
            raise ConfigurationError("backoff values cannot be negative")

    def delay_for(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return min(self.backoff_factor * (2 ** (attempt - 2)), self.max_backoff)

    def should_retry_status(self, status_code: int) -> bool:
        return status_code >= 500


@dataclass(frozen=True)
class ClientConfig:
    """Immutable connection options for a storage adapter instance."""

    auth_token: str
    base_url: str = DEFAULT_BASE_URL
    namespace: Optional[str] = None
    api_revision: ApiRevision = ApiRevision.V1
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    page_size: Optional[int] = None
    user_agent: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.auth_token or not str(self.auth_token).strip():
            raise ConfigurationError("auth_token is required")
        base_url = (self.base_url or DEFAULT_BASE_URL).strip().rstrip("/")
        object.__setattr__(self, "base_url", base_url)
        try:
            revision = ApiRevision(self.api_revision)
        except ValueError:
            raise ConfigurationError(f"Unknown API revision: {self.api_revision!r}") from None
        object.__setattr__(self, "api_revision", revision)
        namespace = (self.namespace or "").strip().strip("/") or None
        object.__setattr__(self, "namespace", namespace)
        if revision.requires_namespace and not namespace:
            raise ConfigurationError(f"namespace is required by API revision {revision.value}")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be greater than zero")
        if self.page_size is not None and self.page_size <= 0:
            raise ConfigurationError("page_size must be greater than zero")

    @property
    def root_path(self) -> str:
        return self.api_revision.root_path(self.namespace)

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "ClientConfig":
        """Build a config from ``LIARA_STORAGE_*`` environment variables."""

        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        retry = RetryPolicy()
        max_attempts = get("MAX_ATTEMPTS")
        if max_attempts is not None:
            retry = RetryPolicy(max_attempts=_parse_int(ENV_PREFIX + "MAX_ATTEMPTS", max_attempts))

        timeout = get("TIMEOUT")
        page_size = get("PAGE_SIZE")
        return cls(
            auth_token=get("TOKEN") or "",
            base_url=get("URL") or DEFAULT_BASE_URL,
            namespace=get("NAMESPACE"),
            api_revision=(get("API_REVISION") or ApiRevision.V1.value).lower(),
            timeout=_parse_float(ENV_PREFIX + "TIMEOUT", timeout) if timeout else DEFAULT_TIMEOUT,
            retry=retry,
            page_size=_parse_int(ENV_PREFIX + "PAGE_SIZE", page_size) if page_size else None,
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ClientConfig":
        """Build a config from a disk options mapping.

        Recognized keys: ``secret`` (required), ``url``, ``namespace``,
        ``api_revision``, ``timeout`` and ``page_size``.
        """

        secret = options.get("secret")
        if not secret:
            raise ConfigurationError("secret key is required")
        timeout = options.get("timeout")
        page_size = options.get("page_size")
        return cls(
            auth_token=str(secret),
            base_url=options.get("url") or DEFAULT_BASE_URL,
            namespace=options.get("namespace"),
            api_revision=str(options.get("api_revision") or ApiRevision.V1.value).lower(),
            timeout=_parse_float("timeout", str(timeout)) if timeout else DEFAULT_TIMEOUT,
            page_size=_parse_int("page_size", str(page_size)) if page_size else None,
        )


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got: {value}") from exc


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got: {value}") from exc
