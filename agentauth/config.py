"""Configuration loading for agentauth."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .credentials import DEFAULT_REGISTRY, CredentialChannel, CredentialKind, CredentialRegistry
from .prompt import DEFAULT_MAX_ATTEMPTS
from .settings import DEFAULT_SETTINGS_PATH
from .spawner import LAUNCH_MODES, LaunchMode

DEFAULT_CONFIG_PATH = Path("~/.agentauth/config.yaml")
CONFIG_ENV_VAR = "AGENTAUTH_CONFIG"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


@dataclass
class AgentLauncher:
    """Configuration for launching the agent process."""

    command: List[str] = field(default_factory=lambda: ["claude"])
    env: Dict[str, str] = field(default_factory=dict)
    launch_mode: LaunchMode = "subprocess"


@dataclass
class Config:
    settings_path: Path = field(default_factory=lambda: DEFAULT_SETTINGS_PATH.expanduser())
    log_dir: Optional[Path] = None
    prompt_attempts: int = DEFAULT_MAX_ATTEMPTS
    agent_launcher: AgentLauncher = field(default_factory=AgentLauncher)
    registry: CredentialRegistry = DEFAULT_REGISTRY


def _expand_path(raw: Optional[str]) -> Optional[Path]:
    if raw is None:
        return None
    return Path(raw).expanduser().resolve()


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def build_default_config() -> Config:
    """Zero-config defaults used when no configuration file exists."""
    return Config()


def load_config(path: Path) -> Config:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return _build_config(data)


def _build_config(data: Dict[str, Any]) -> Config:
    defaults = Config()

    settings_raw = data.get("settings_path")
    if settings_raw is not None and not isinstance(settings_raw, str):
        raise ConfigError("`settings_path` must be a path string when provided.")
    settings_path = _expand_path(settings_raw) or defaults.settings_path

    log_dir_raw = data.get("log_dir")
    if log_dir_raw is not None and not isinstance(log_dir_raw, str):
        raise ConfigError("`log_dir` must be a path string when provided.")
    log_dir = _expand_path(log_dir_raw)

    prompt_attempts = data.get("prompt_attempts", DEFAULT_MAX_ATTEMPTS)
    if isinstance(prompt_attempts, bool) or not isinstance(prompt_attempts, int) or prompt_attempts < 1:
        raise ConfigError("`prompt_attempts` must be a positive integer.")

    return Config(
        settings_path=settings_path,
        log_dir=log_dir,
        prompt_attempts=prompt_attempts,
        agent_launcher=_parse_agent_launcher(data.get("agent_launcher")),
        registry=_parse_credentials(data.get("credentials")),
    )


def _parse_agent_launcher(raw: Any) -> AgentLauncher:
    if raw is None:
        return AgentLauncher()

    if not isinstance(raw, dict):
        raise ConfigError("`agent_launcher` must be a mapping when provided.")

    command_raw = raw.get("command", ["claude"])
    if isinstance(command_raw, str):
        command = [command_raw]
    elif isinstance(command_raw, list) and all(isinstance(item, str) for item in command_raw):
        command = command_raw or ["claude"]
    else:
        raise ConfigError("`agent_launcher.command` must be a string or list of strings.")

    env_raw = raw.get("env", {}) or {}
    if not isinstance(env_raw, dict) or any(not isinstance(k, str) or not isinstance(v, str) for k, v in env_raw.items()):
        raise ConfigError("`agent_launcher.env` must be a mapping of string keys to string values.")

    launch_mode = raw.get("launch_mode", "subprocess")
    if launch_mode not in LAUNCH_MODES:
        raise ConfigError(
            f"`agent_launcher.launch_mode` must be 'subprocess' or 'exec', got {launch_mode!r}."
        )

    return AgentLauncher(command=command, env=dict(env_raw), launch_mode=launch_mode)


def _parse_kind(raw: Any, key: str) -> CredentialKind:
    if not isinstance(raw, str):
        raise ConfigError(f"`{key}` must be a credential kind string.")
    try:
        return CredentialKind.parse(raw)
    except ValueError as exc:
        raise ConfigError(f"`{key}`: {exc}") from exc


def _parse_credentials(raw: Any) -> CredentialRegistry:
    if raw is None:
        return DEFAULT_REGISTRY
    if not isinstance(raw, dict):
        raise ConfigError("`credentials` must be a mapping when provided.")

    channels = DEFAULT_REGISTRY.channels
    if raw.get("channels") is not None:
        channels = _parse_channels(raw["channels"])

    default_kind = DEFAULT_REGISTRY.default_kind
    if raw.get("default_kind") is not None:
        default_kind = _parse_kind(raw["default_kind"], "credentials.default_kind")

    try:
        return CredentialRegistry(channels=channels, default_kind=default_kind)
    except ValueError as exc:
        raise ConfigError(f"`credentials`: {exc}") from exc


def _parse_channels(raw: Any) -> Tuple[CredentialChannel, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("`credentials.channels` must be a non-empty list.")

    channels: List[CredentialChannel] = []
    for index, entry in enumerate(raw):
        key = f"credentials.channels[{index}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"`{key}` must be a mapping.")

        kind = _parse_kind(entry.get("kind"), f"{key}.kind")

        variables_raw = entry.get("variables", []) or []
        if not isinstance(variables_raw, list) or any(
            not isinstance(name, str) or not name for name in variables_raw
        ):
            raise ConfigError(f"`{key}.variables` must be a list of variable names.")

        ambient = entry.get("ambient", False)
        if not isinstance(ambient, bool):
            raise ConfigError(f"`{key}.ambient` must be a boolean when provided.")

        if not variables_raw and not ambient:
            raise ConfigError(f"`{key}` needs at least one variable or `ambient: true`.")

        channels.append(CredentialChannel(kind=kind, variables=tuple(variables_raw), ambient=ambient))
    return tuple(channels)
