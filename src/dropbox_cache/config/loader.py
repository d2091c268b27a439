from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from dropbox_cache.config.models import AppConfig, ConfigLoadRequest
from dropbox_cache.errors import ConfigurationError

# Variable names used by earlier deployments of the service.
LEGACY_ENV_VARS: Mapping[str, Sequence[str]] = {
    "DROPBOX_CLIENT_ID": ("credentials", "client_id"),
    "DROPBOX_CLIENT_SECRET": ("credentials", "client_secret"),
    "DROPBOX_REFRESH_TOKEN": ("credentials", "refresh_token"),
}


def _default_layout() -> dict[str, Any]:
    return {
        "logging": {"level": "INFO", "file": {"path": "", "rotation": {"backup_count": 7}}},
        "credentials": {"client_id": "", "client_secret": "", "refresh_token": ""},
        "storage": {
            "token_url": "https://api.dropbox.com/oauth2/token",
            "api_base_url": "https://api.dropboxapi.com/2",
            "content_base_url": "https://content.dropboxapi.com/2",
            "request_timeout_seconds": 60.0,
        },
        "cache": {"cache_dir": "", "max_attempts": 3, "retry_backoff_seconds": 0.0, "max_entries": None},
    }


def _read_yaml_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def _merge(base: MutableMapping[str, Any], overrides: Mapping[str, Any], path: Sequence[str] = ()) -> None:
    for key, value in overrides.items():
        dotted = ".".join([*path, str(key)])
        if key not in base:
            raise ConfigurationError(f"Unknown configuration key path: {dotted}")
        current = base[key]
        if isinstance(current, dict):
            if not isinstance(value, dict):
                raise ConfigurationError(f"Configuration key path must be a mapping: {dotted}")
            _merge(current, value, [*path, str(key)])
        else:
            base[key] = value


def _load_dotenv_if_present(dotenv_path: Path) -> None:
    if not dotenv_path.exists():
        return
    load_dotenv(dotenv_path=dotenv_path, override=False)


def _env_var_name_to_segments(env_var_name: str, prefix: str) -> Sequence[str]:
    remainder = env_var_name[len(prefix) :]
    parts = [p for p in remainder.split("__") if p]
    if not parts:
        raise ConfigurationError(f"Invalid environment variable override name: {env_var_name}")
    return [p.lower() for p in parts]


def _get_parent_mapping(config: MutableMapping[str, Any], path: Sequence[str]) -> MutableMapping[str, Any]:
    cur: MutableMapping[str, Any] = config
    for segment in path[:-1]:
        if segment not in cur:
            dotted = ".".join(path)
            raise ConfigurationError(f"Unknown configuration key path: {dotted}")
        next_value = cur[segment]
        if not isinstance(next_value, dict):
            dotted = ".".join(path)
            raise ConfigurationError(f"Configuration key path does not point to a mapping: {dotted}")
        cur = next_value
    return cur


def _set_value(config: MutableMapping[str, Any], segments: Sequence[str], value: str) -> None:
    parent = _get_parent_mapping(config, segments)
    leaf = segments[-1]
    if leaf not in parent:
        raise ConfigurationError(f"Unknown configuration key path: {'.'.join(segments)}")
    # Pydantic handles type coercion/validation later.
    parent[leaf] = value


def _apply_env_overrides(config: MutableMapping[str, Any], env_prefix: str) -> None:
    for name, segments in LEGACY_ENV_VARS.items():
        value = os.environ.get(name)
        if value:
            _set_value(config, segments, value)

    for name, value in os.environ.items():
        if not name.startswith(env_prefix):
            continue
        _set_value(config, _env_var_name_to_segments(name, env_prefix), value)


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        dotted = ".".join(str(part) for part in item["loc"])
        problems.append(f"{dotted}: {item['msg']}")
    return "; ".join(problems)


class YamlConfigLoader:
    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        config = _default_layout()
        _merge(config, _read_yaml_config(Path(request.yaml_path)))

        if request.dotenv_path is not None:
            _load_dotenv_if_present(Path(request.dotenv_path))

        _apply_env_overrides(config, request.env_prefix)
        try:
            return AppConfig.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {_describe_validation_error(e)}") from e
