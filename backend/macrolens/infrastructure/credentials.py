"""Credential Stores: report presence or absence of the LLM provider API key.

Invariants:
    - get_api_key() returns None when no usable key exists, never an empty string
    - Stores never log key material
"""

from typing import Protocol

from macrolens.config import Settings


class CredentialStore(Protocol):
    def get_api_key(self) -> str | None: ...


class SettingsCredentialStore:
    """Reads the key from application settings (env / .env)."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def get_api_key(self) -> str | None:
        return self._settings.anthropic_api_key or None


class StaticCredentialStore:
    """Holds a key supplied by the embedding app (e.g. read from a keychain)."""

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key

    def set_api_key(self, api_key: str | None) -> None:
        self._api_key = api_key

    def get_api_key(self) -> str | None:
        if self._api_key is None or not self._api_key.strip():
            return None
        return self._api_key
