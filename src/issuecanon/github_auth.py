"""GitHub App authentication for issuecanon.

The app authenticates as itself with a short-lived RS256 JWT (to list
installations and mint tokens) and as each installation with an installation
access token (to read and write issues). Tokens are cached in memory and
renewed five minutes before they expire.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import requests

from .github_rest import DEFAULT_API_URL, GitHubRestClient
from .logging import get_logger
from .retry import RetryConfig

_PEM_MARKER = "-----BEGIN"
_EXPIRY_BUFFER = timedelta(minutes=5)
_JWT_LIFETIME = timedelta(minutes=10)


class GitHubAppAuthError(RuntimeError):
    """Raised when app or installation credentials cannot be produced."""


@dataclass
class GitHubAppConfig:
    """Configuration for GitHub App authentication."""

    app_id: str | None
    private_key_path: str | None
    api_url: str = DEFAULT_API_URL


@dataclass
class _CachedToken:
    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < (self.expires_at - _EXPIRY_BUFFER)


class GitHubAppTokenManager:
    """Produces app-level and installation-level REST clients."""

    def __init__(
        self,
        config: GitHubAppConfig,
        *,
        session_factory: Callable[[], requests.Session] | None = None,
        retry: RetryConfig | None = None,
    ):
        self.config = config
        self.logger = get_logger()
        self._session_factory = session_factory or requests.Session
        self._retry = retry
        self._jwt: _CachedToken | None = None
        self._installation_tokens: dict[int, _CachedToken] = {}

    def is_enabled(self) -> bool:
        return bool(self.config.app_id and self.config.private_key_path)

    def _read_private_key(self) -> str:
        value = self.config.private_key_path
        if not value:
            raise GitHubAppAuthError("Private key not configured")
        if _PEM_MARKER in value:
            # GITHUB_APP_PRIVATE_KEY may hold the PEM itself rather than a path
            return value.replace("\\n", "\n")
        path = Path(os.path.expanduser(value))
        if not path.exists():
            raise GitHubAppAuthError(f"Private key file not found: {path}")
        private_key = path.read_text(encoding="utf-8")
        if not private_key.strip():
            raise GitHubAppAuthError(f"Private key file is empty: {path}")
        return private_key

    def generate_jwt(self) -> str:
        """Return a signed app JWT, reusing the cached one while it is valid."""
        now = datetime.now(timezone.utc)
        if self._jwt is not None and self._jwt.is_valid(now):
            return self._jwt.token
        if not self.config.app_id:
            raise GitHubAppAuthError("GitHub App id not configured")

        expires_at = now + _JWT_LIFETIME
        payload = {
            "iat": int(now.timestamp()) - 60,
            "exp": int(expires_at.timestamp()),
            "iss": self.config.app_id,
        }
        try:
            signed = jwt.encode(
                payload, self._read_private_key(), algorithm="RS256", headers={"typ": "JWT"}
            )
        except (jwt.PyJWTError, ValueError) as exc:
            raise GitHubAppAuthError(f"Failed to sign GitHub App JWT: {exc}") from exc
        token = signed.decode("utf-8") if isinstance(signed, bytes) else str(signed)
        self._jwt = _CachedToken(token, expires_at)
        self.logger.debug("Generated signed JWT for GitHub App", app_id=self.config.app_id)
        return token

    def _client(self, token: str) -> GitHubRestClient:
        return GitHubRestClient(
            token=token,
            base_url=self.config.api_url,
            session=self._session_factory(),
            retry=self._retry,
        )

    def app_client(self) -> GitHubRestClient:
        return self._client(self.generate_jwt())

    def installation_token(self, installation_id: int) -> str:
        now = datetime.now(timezone.utc)
        cached = self._installation_tokens.get(installation_id)
        if cached is not None and cached.is_valid(now):
            return cached.token

        data = self.app_client().create_installation_token(installation_id)
        expires_str = data.get("expires_at")
        if isinstance(expires_str, str) and expires_str:
            # GitHub uses ISO format: 2025-01-01T10:00:00Z
            expires_at = datetime.fromisoformat(expires_str.replace("Z", "+00:00"))
        else:
            expires_at = now + timedelta(hours=1)
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        token = str(data["token"])
        self._installation_tokens[installation_id] = _CachedToken(token, expires_at)
        self.logger.log_operation(
            "github_app_token_generated",
            app_id=self.config.app_id,
            installation_id=installation_id,
            expires_at=expires_at.isoformat(),
        )
        return token

    def installation_client(self, installation_id: int) -> GitHubRestClient:
        return self._client(self.installation_token(installation_id))


__all__ = [
    "GitHubAppAuthError",
    "GitHubAppConfig",
    "GitHubAppTokenManager",
]
