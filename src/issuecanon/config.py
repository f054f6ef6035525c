from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .env_auth import EnvAuthConfig, load_environment

DEFAULT_REDIRECT_URL = "https://github.com/TokTok/experimental/issues/23"
DEFAULT_WELCOME_COMMENT = "Thanks for opening this issue!"


class ConfigError(RuntimeError):
    pass


@dataclass
class CanonConfig:
    config_file: Path
    github_api_url: str = "https://api.github.com"
    github_app_id: str | None = None
    github_app_private_key_path: str | None = None
    store_path: Path = Path(".issuecanon/issues.json")
    store_collection: str = "issues"
    sync_state: str = "all"
    force_refresh_repos: list[str] = field(default_factory=lambda: ["experimental"])
    # None -> bounded by the number of aggregated issues
    max_gaps: int | None = None
    write_back: bool = False
    welcome_comment: str = DEFAULT_WELCOME_COMMENT
    reencode_on_open: bool = False
    redirect_target_url: str = DEFAULT_REDIRECT_URL
    concurrency_max_workers: int = 8
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    env_auth: EnvAuthConfig = field(default_factory=EnvAuthConfig)


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $; unset variables give None."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:]) or None
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f'Section {name!r} must be a mapping')
    return cast(dict[str, Any], value)


def _optional_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'{name} must be an integer, got {value!r}') from exc


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def load_config(path: str | Path) -> CanonConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    raw = cast(dict[str, Any], loaded)

    env = _section(raw, 'environment')
    env_auth = EnvAuthConfig(
        load_dotenv=bool(env.get('load_dotenv', True)),
        dotenv_path=env.get('dotenv_path'),
    )
    # .env must be loaded before $VAR references are resolved
    load_environment(env_auth)

    gh = _section(raw, 'github')
    app = cast(dict[str, Any], gh.get('app', {}) or {})
    store = _section(raw, 'store')
    sync = _section(raw, 'sync')
    allocation = _section(raw, 'allocation')
    events = _section(raw, 'events')
    redirect = _section(raw, 'redirect')
    concurrency = _section(raw, 'concurrency')
    logging_config = _section(raw, 'logging')

    max_gaps = _optional_int(allocation.get('max_gaps'), 'allocation.max_gaps')
    if max_gaps is not None and max_gaps < 0:
        raise ConfigError('allocation.max_gaps must be >= 0')
    force_refresh = sync.get('force_refresh_repos', ['experimental'])
    if isinstance(force_refresh, str):
        force_refresh = [force_refresh]

    store_path = Path(str(store.get('path', '.issuecanon/issues.json')))
    if not store_path.is_absolute():
        store_path = p.parent / store_path

    return CanonConfig(
        config_file=p,
        github_api_url=str(gh.get('api_url', 'https://api.github.com')),
        github_app_id=_optional_str(_resolve_env_var(app.get('app_id', '$GITHUB_APP_ID'))),
        github_app_private_key_path=_resolve_env_var(
            app.get('private_key_path', '$GITHUB_APP_PRIVATE_KEY')
        ),
        store_path=store_path,
        store_collection=str(store.get('collection', 'issues')),
        sync_state=str(sync.get('state', 'all')),
        force_refresh_repos=[str(r) for r in force_refresh or []],
        max_gaps=max_gaps,
        write_back=bool(allocation.get('write_back', False)),
        welcome_comment=str(events.get('welcome_comment', DEFAULT_WELCOME_COMMENT)),
        reencode_on_open=bool(events.get('reencode_on_open', False)),
        redirect_target_url=str(redirect.get('target_url', DEFAULT_REDIRECT_URL)),
        concurrency_max_workers=int(concurrency.get('max_workers', 8)),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        env_auth=env_auth,
    )


__all__ = ["CanonConfig", "ConfigError", "load_config"]
