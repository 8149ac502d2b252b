from __future__ import annotations
"""Connection profile models and persistence."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .config import DEFAULT_BASE_URL, ApiRevision, ClientConfig
from .settings import TransportSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class ConnectionProfile:
    """Represents a saved storage connection."""

    name: str
    base_url: str = DEFAULT_BASE_URL
    auth_token: str = ""
    namespace: Optional[str] = None
    api_revision: str = ApiRevision.V1.value

    def to_config(self, settings: TransportSettings | None = None) -> ClientConfig:
        settings = settings or TransportSettings()
        return ClientConfig(
            auth_token=self.auth_token,
            base_url=self.base_url,
            namespace=self.namespace,
            api_revision=self.api_revision,
            timeout=settings.timeout,
            retry=settings.retry_policy(),
            page_size=settings.page_size,
        )


class KeychainStore:
    """Stores one auth token per connection profile in the OS keychain.

    Entries live under ``service_name`` with the account ``profile:<name>``.
    Keychain failures are logged and treated as a missing token.
    """

    def __init__(self, service_name: str = "liara-storage"):
        self._service_name = service_name

    def get_token(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, _account(profile_name)) or ""
        except KeyringError as exc:
            LOGGER.warning("Could not read token for profile '%s': %s", profile_name, exc)
            return ""

    def set_token(self, profile_name: str, token: str) -> None:
        if not profile_name:
            return
        if not token:
            self.delete_token(profile_name)
            return
        try:
            keyring.set_password(self._service_name, _account(profile_name), token)
        except KeyringError as exc:
            LOGGER.warning("Could not store token for profile '%s': %s", profile_name, exc)

    def delete_token(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, _account(profile_name))
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            LOGGER.warning("Could not delete token for profile '%s': %s", profile_name, exc)


class ProfileStorage:
    """JSON-backed store for connection profiles; tokens live in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".liara_storage_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_data()
        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                token = entry.get("auth_token", "")
                if token:
                    saw_plaintext = True
                    self._keychain.set_token(name, token)
                else:
                    token = self._keychain.get_token(name)
                profile = ConnectionProfile(
                    name=name,
                    base_url=entry.get("base_url") or DEFAULT_BASE_URL,
                    auth_token=token,
                    namespace=entry.get("namespace") or None,
                    api_revision=entry.get("api_revision") or ApiRevision.V1.value,
                )
            except (KeyError, AttributeError, TypeError):
                continue
            profiles.append(profile)
            sanitized.append(_public_fields(profile))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def get(self, name: str) -> ConnectionProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_token(profile.name, profile.auth_token)
            data.append(_public_fields(profile))
        existing_names = {entry.get("name") for entry in self._read_data() if isinstance(entry, dict)}
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            if isinstance(name, str) and name:
                self._keychain.delete_token(name)
        self._write_data(data)

    def _read_data(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _public_fields(profile: ConnectionProfile) -> dict[str, str]:
    fields = {
        "name": profile.name,
        "base_url": profile.base_url,
        "api_revision": profile.api_revision,
    }
    if profile.namespace:
        fields["namespace"] = profile.namespace
    return fields


def _account(profile_name: str) -> str:
    return f"profile:{profile_name}"
