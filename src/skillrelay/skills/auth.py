"""Credential lookup for outbound skill calls.

Token acquisition itself (AAD, certificates, managed identity) belongs to
the host; the forwarder only asks a :class:`CredentialProvider` for a
bearer token scoped to the target skill.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import SecretStr


class CredentialProvider(ABC):
    """Supplies bearer tokens for root-to-skill calls."""

    @abstractmethod
    async def get_token(self, from_bot_id: str, to_app_id: str) -> str | None:
        """Return a token authorizing *from_bot_id* to call *to_app_id*.

        ``None`` sends the request without an ``Authorization`` header.
        """
        ...


class AnonymousCredentialProvider(CredentialProvider):
    """No credentials; for local development against unauthenticated skills."""

    async def get_token(self, from_bot_id: str, to_app_id: str) -> str | None:
        return None


class StaticTokenCredentialProvider(CredentialProvider):
    """Returns pre-acquired tokens, optionally per target app ID."""

    def __init__(
        self,
        token: str | SecretStr | None = None,
        *,
        per_skill: dict[str, str | SecretStr] | None = None,
    ) -> None:
        self._default = _secret(token)
        self._per_skill = {k: _secret(v) for k, v in (per_skill or {}).items()}

    async def get_token(self, from_bot_id: str, to_app_id: str) -> str | None:
        secret = self._per_skill.get(to_app_id, self._default)
        return secret.get_secret_value() if secret is not None else None


def _secret(value: str | SecretStr | None) -> SecretStr | None:
    if value is None or isinstance(value, SecretStr):
        return value
    return SecretStr(value)
