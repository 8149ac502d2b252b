from __future__ import annotations
"""Persistence for transport tuning options."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path
from typing import Optional

from .config import DEFAULT_TIMEOUT, RetryPolicy


@dataclass
class TransportSettings:
    """Simple container for persistent transport settings."""

    timeout: float = DEFAULT_TIMEOUT
    max_attempts: int = RetryPolicy.max_attempts
    backoff_factor: float = RetryPolicy.backoff_factor
    max_backoff: float = RetryPolicy.max_backoff
    page_size: Optional[int] = None

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff_factor=self.backoff_factor,
            max_backoff=self.max_backoff,
        )


class SettingsStorage:
    """JSON-backed persistence for :class:`TransportSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".liara_storage_settings.json"
        self._path = Path(storage_path)

    def load(self) -> TransportSettings:
        if not self._path.exists():
            return TransportSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return TransportSettings()
        if not isinstance(data, dict):
            return TransportSettings()
        defaults = TransportSettings()
        page_size = _positive(data.get("page_size"), int, None)
        return TransportSettings(
            timeout=_positive(data.get("timeout"), float, defaults.timeout),
            max_attempts=_positive(data.get("max_attempts"), int, defaults.max_attempts),
            backoff_factor=_non_negative(data.get("backoff_factor"), defaults.backoff_factor),
            max_backoff=_non_negative(data.get("max_backoff"), defaults.max_backoff),
            page_size=page_size,
        )

    def save(self, settings: TransportSettings) -> None:
        payload = asdict(settings)
        payload["timeout"] = max(float(settings.timeout), 1.0)
        payload["max_attempts"] = max(int(settings.max_attempts), 1)
        payload["backoff_factor"] = max(float(settings.backoff_factor), 0.0)
        payload["max_backoff"] = max(float(settings.max_backoff), 0.0)
        if settings.page_size is not None:
            payload["page_size"] = max(int(settings.page_size), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return


def _positive(value, cast, default):
    if isinstance(value, bool):
        return default
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _non_negative(value, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default
