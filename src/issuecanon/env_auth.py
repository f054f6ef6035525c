"""Environment-based credentials for issuecanon.

Loads ``.env`` files through python-dotenv so that ``$GITHUB_APP_ID`` style
references in the configuration file resolve in local runs and containers
alike. Existing environment variables always win over ``.env`` values.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

_FALLBACK_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None


def load_environment(config: EnvAuthConfig) -> Path | None:
    """Load the first ``.env`` file found; returns its path or None."""
    if not config.load_dotenv:
        return None
    logger = get_logger()
    candidates = [config.dotenv_path] if config.dotenv_path else list(_FALLBACK_LOCATIONS)
    for location in candidates:
        env_path = Path(location)
        if env_path.exists():
            load_dotenv(str(env_path), override=False)
            logger.debug(f"Loaded environment variables from {env_path}")
            return env_path
    return None


__all__ = ["EnvAuthConfig", "load_environment"]
