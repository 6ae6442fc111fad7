from pathlib import Path

import pytest

from agentauth.config import (
    CONFIG_ENV_VAR,
    AgentLauncher,
    ConfigError,
    build_default_config,
    default_config_path,
    load_config,
)
from agentauth.credentials import DEFAULT_REGISTRY, CredentialChannel, CredentialKind


def write_config(tmp_path: Path, content: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


def test_empty_config_uses_defaults(tmp_path: Path) -> None:
    cfg = load_config(write_config(tmp_path, ""))

    assert cfg.agent_launcher == AgentLauncher()
    assert cfg.agent_launcher.command == ["claude"]
    assert cfg.agent_launcher.launch_mode == "subprocess"
    assert cfg.registry == DEFAULT_REGISTRY
    assert cfg.prompt_attempts == 3
    assert cfg.log_dir is None
    assert cfg.settings_path == Path("~/.agentauth/settings.json").expanduser()


def test_load_config_success(tmp_path: Path) -> None:
    config_path = write_config(
        tmp_path,
        """
settings_path: ./state/settings.json
log_dir: ./logs
prompt_attempts: 5
agent_launcher:
  command: [claude, --model, opus]
  env:
    DISABLE_TELEMETRY: "1"
  launch_mode: exec
credentials:
  default_kind: api_key
  channels:
    - kind: subscription
      variables: [CLAUDE_CODE_OAUTH_TOKEN]
      ambient: true
    - kind: api_key
      variables: [ANTHROPIC_API_KEY]
""",
    )
    cfg = load_config(config_path)

    assert cfg.settings_path == Path("./state/settings.json").resolve()
    assert cfg.log_dir == Path("./logs").resolve()
    assert cfg.prompt_attempts == 5
    assert cfg.agent_launcher.command == ["claude", "--model", "opus"]
    assert cfg.agent_launcher.env == {"DISABLE_TELEMETRY": "1"}
    assert cfg.agent_launcher.launch_mode == "exec"
    assert cfg.registry.default_kind is CredentialKind.API_KEY
    assert cfg.registry.channels == (
        CredentialChannel(CredentialKind.SUBSCRIPTION_SESSION, ("CLAUDE_CODE_OAUTH_TOKEN",), ambient=True),
        CredentialChannel(CredentialKind.API_KEY, ("ANTHROPIC_API_KEY",)),
    )


def test_command_string_is_wrapped(tmp_path: Path) -> None:
    cfg = load_config(write_config(tmp_path, "agent_launcher:\n  command: codex\n"))
    assert cfg.agent_launcher.command == ["codex"]


@pytest.mark.parametrize(
    "yaml_content, message",
    [
        ("- a\n- b\n", "root must be a mapping"),
        ("settings_path: 3\n", "`settings_path` must be a path string"),
        ("log_dir: [a]\n", "`log_dir` must be a path string"),
        ("prompt_attempts: 0\n", "`prompt_attempts` must be a positive integer"),
        ("prompt_attempts: true\n", "`prompt_attempts` must be a positive integer"),
        ("agent_launcher: nope\n", "`agent_launcher` must be a mapping"),
        ("agent_launcher:\n  command: 5\n", "`agent_launcher.command`"),
        ("agent_launcher:\n  env: {A: 1}\n", "`agent_launcher.env`"),
        ("agent_launcher:\n  launch_mode: fork\n", "'subprocess' or 'exec'"),
        ("credentials: []\n", "`credentials` must be a mapping"),
        ("credentials:\n  default_kind: token\n", "Unknown credential kind"),
        ("credentials:\n  channels: []\n", "non-empty list"),
        ("credentials:\n  channels: [api_key]\n", "`credentials.channels[0]` must be a mapping"),
        ("credentials:\n  channels:\n    - variables: [A]\n", "`credentials.channels[0].kind`"),
        (
            "credentials:\n  channels:\n    - kind: api_key\n      variables: A\n",
            "`credentials.channels[0].variables`",
        ),
        (
            "credentials:\n  channels:\n    - kind: api_key\n      variables: [A]\n      ambient: yes please\n",
            "`credentials.channels[0].ambient`",
        ),
        (
            "credentials:\n  channels:\n    - kind: api_key\n",
            "needs at least one variable",
        ),
        (
            "credentials:\n  channels:\n    - kind: api_key\n      variables: [A]\n",
            "Default kind 'subscription' has no configured channel",
        ),
        (
            "credentials:\n  default_kind: api_key\n  channels:\n"
            "    - kind: api_key\n      variables: [A]\n    - kind: api_key\n      variables: [B]\n",
            "must not repeat",
        ),
    ],
)
def test_load_config_validation(tmp_path: Path, yaml_content: str, message: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(write_config(tmp_path, yaml_content))
    assert message in str(excinfo.value)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Failed to parse YAML"):
        load_config(write_config(tmp_path, "agent_launcher: [\n"))


def test_default_config_path_honours_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "alt.yaml"))
    assert default_config_path() == tmp_path / "alt.yaml"

    monkeypatch.delenv(CONFIG_ENV_VAR)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_config_path() == tmp_path / ".agentauth" / "config.yaml"


def test_build_default_config() -> None:
    cfg = build_default_config()
    assert cfg.registry is DEFAULT_REGISTRY
    assert cfg.agent_launcher.command == ["claude"]
