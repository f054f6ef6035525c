"""Runtime helpers for issuecanon CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

from .concurrency import AsyncGitHubApp, ConcurrencyConfig
from .config import CanonConfig, load_config
from .errors import classify_error
from .github_auth import GitHubAppConfig, GitHubAppTokenManager
from .index_store import JsonIssueStore
from .logging import configure_logging, get_logger


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str], CanonConfig] = load_config
) -> CanonConfig | None:
    """Load config for the given argparse namespace and configure logging."""
    if getattr(args, "cmd", None) == "inspect":
        return None
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    cfg = loader(args.config)
    level = "WARNING" if getattr(args, "quiet", False) else cfg.logging_level
    configure_logging(json_logging=cfg.logging_json_enabled, level=level)
    return cfg


def build_github_app(cfg: CanonConfig) -> AsyncGitHubApp:
    tokens = GitHubAppTokenManager(
        GitHubAppConfig(
            app_id=cfg.github_app_id,
            private_key_path=cfg.github_app_private_key_path,
            api_url=cfg.github_api_url,
        )
    )
    return AsyncGitHubApp(tokens, ConcurrencyConfig(max_workers=cfg.concurrency_max_workers))


def build_store(cfg: CanonConfig) -> JsonIssueStore:
    return JsonIssueStore(cfg.store_path, collection=cfg.store_collection)


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler, logging its duration and any classified failure."""
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
    except Exception as exc:
        info = classify_error(exc)
        logger.log_error(
            f"command {command} failed",
            error=info.message,
            category=info.category,
            transient=info.transient,
        )
        return 1
    exit_code = int(result) if result is not None else 0
    duration_ms = max(0.0, time.monotonic() - start) * 1000
    logger.debug(
        f"command {command} finished", duration_ms=round(duration_ms, 2), exit_code=exit_code
    )
    return exit_code


__all__ = ["build_github_app", "build_store", "execute_command", "prepare_config"]
