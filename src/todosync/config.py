from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .content import DEFAULT_TITLE_WIDTH
from .extractor import DEFAULT_EXCLUDE, DEFAULT_PREFIXES, normalize_prefixes
from .github_rest import DEFAULT_API_URL, DEFAULT_TIMEOUT
from .keys import KEY_STRATEGIES
from .logging import LOG_STREAMS

CONFIG_DEFAULT = "todosync.config.yaml"


class ConfigError(RuntimeError):
    pass


@dataclass
class SyncConfig:
    version: int
    config_path: Path | None
    # Source scanning
    source_root: Path
    prefixes: list[str]
    extensions: list[str]
    exclude: list[str]
    key_strategy: str
    # Tracker connection
    github_repo: str | None
    github_token: str | None
    github_api_url: str
    github_timeout: float
    github_labels: list[str]
    github_retry_attempts: int
    # Issue text
    title_width: int
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    logging_stream: str
    # Concurrency configuration
    concurrency_enabled: bool
    concurrency_max_workers: int
    concurrency_batch_size: int
    # Environment authentication configuration
    env_auth_load_dotenv: bool
    env_auth_dotenv_path: str | None


def _resolve_env_var(value: Any) -> Any:
    """Resolve ``$NAME`` strings from the environment (None when unset)."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:])
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _str_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(',') if p.strip()]
    if isinstance(value, list):
        return [str(p).strip() for p in value if str(p).strip()]
    raise ConfigError(f"'{name}' must be a list or comma separated string")


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}") from exc
    if number < 1:
        raise ConfigError(f"'{name}' must be >= 1, got {number}")
    return number


def _positive_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"'{name}' must be > 0, got {number}")
    return number


def _log_stream(value: Any) -> str:
    stream = str(value).lower()
    if stream not in LOG_STREAMS:
        raise ConfigError(f"'logging.stream' must be one of {', '.join(LOG_STREAMS)}")
    return stream


def config_from_dict(raw: dict[str, Any], *, base_dir: Path, config_path: Path | None = None) -> SyncConfig:
    src = _section(raw, 'source')
    identity = _section(raw, 'identity')
    gh = _section(raw, 'github')
    content = _section(raw, 'content')
    logging_config = _section(raw, 'logging')
    concurrency_config = _section(raw, 'concurrency')
    env_auth = _section(raw, 'environment')

    prefixes = normalize_prefixes(_str_list(src.get('prefixes', list(DEFAULT_PREFIXES)), 'source.prefixes'))
    if not prefixes:
        raise ConfigError("'source.prefixes' must name at least one prefix")
    extensions = [
        ext if ext.startswith('.') else f'.{ext}'
        for ext in _str_list(src.get('extensions'), 'source.extensions')
    ]
    exclude_raw = src.get('exclude')
    exclude = list(DEFAULT_EXCLUDE) if exclude_raw is None else _str_list(exclude_raw, 'source.exclude')

    strategy = str(identity.get('strategy', 'position'))
    if strategy not in KEY_STRATEGIES:
        raise ConfigError(f"'identity.strategy' must be one of {', '.join(KEY_STRATEGIES)}")

    repo = _resolve_env_var(gh.get('repo'))
    token = _resolve_env_var(gh.get('token'))

    return SyncConfig(
        version=int(raw.get('version', 1)),
        config_path=config_path,
        source_root=(base_dir / str(src.get('root', '.'))).resolve(),
        prefixes=prefixes,
        extensions=extensions,
        exclude=exclude,
        key_strategy=strategy,
        github_repo=str(repo) if repo else None,
        github_token=str(token) if token else None,
        github_api_url=str(gh.get('api_url') or DEFAULT_API_URL),
        github_timeout=_positive_float(gh.get('timeout', DEFAULT_TIMEOUT), 'github.timeout'),
        github_labels=_str_list(gh.get('labels'), 'github.labels'),
        github_retry_attempts=_positive_int(gh.get('retry_attempts', 1), 'github.retry_attempts'),
        title_width=_positive_int(content.get('title_width', DEFAULT_TITLE_WIDTH), 'content.title_width'),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        logging_stream=_log_stream(logging_config.get('stream', 'stdout')),
        concurrency_enabled=bool(concurrency_config.get('enabled', False)),
        concurrency_max_workers=_positive_int(concurrency_config.get('max_workers', 4), 'concurrency.max_workers'),
        concurrency_batch_size=_positive_int(concurrency_config.get('batch_size', 10), 'concurrency.batch_size'),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


def load_config(path: str | Path) -> SyncConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    return config_from_dict(cast(dict[str, Any], loaded), base_dir=p.parent.resolve(), config_path=p)


def default_config(root: str | Path = '.') -> SyncConfig:
    """Configuration used when no config file exists (scan ``root``)."""
    return config_from_dict({'source': {'root': str(root)}}, base_dir=Path.cwd())


__all__ = ["CONFIG_DEFAULT", "ConfigError", "SyncConfig", "config_from_dict", "load_config", "default_config"]
