"""Typer-powered CLI entry point."""

from __future__ import annotations

import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Optional

import typer

from . import __version__
from .config import Config, ConfigError, build_default_config, default_config_path, load_config
from .credentials import CredentialKind
from .launcher import LaunchOrchestrator
from .logging_utils import RedactCredentialsFilter, setup_logger
from .policy import PolicyResolver
from .prompt import TerminalPrompter
from .settings import (
    JsonSettingsStore,
    PreferenceReadError,
    PreferenceWriteError,
    clear_preference,
    load_preference,
    save_preference,
)
from .spawner import LAUNCH_MODES, AgentSpawner, SpawnError

EXIT_SPAWN_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_SETTINGS_CORRUPT = 3
EXIT_SETTINGS_UNWRITABLE = 4

app = typer.Typer(help="agentauth – choose which credential a coding agent sees at launch.")
preference_app = typer.Typer(help="Show or change the stored credential preference.")
app.add_typer(preference_app, name="preference")


def _get_config(ctx: typer.Context) -> Config:
    obj = ctx.obj or {}
    config = obj.get("config")
    if config is None:
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    return config


def _settings_store(config: Config) -> JsonSettingsStore:
    return JsonSettingsStore(config.settings_path)


def _build_logger(config: Config, verbose: bool) -> logging.Logger:
    redact = RedactCredentialsFilter.from_environment(os.environ, config.registry.all_variables())
    return setup_logger("agentauth", config.log_dir, verbose, redact=redact)


def _build_orchestrator(
    config: Config,
    logger: logging.Logger,
    *,
    launch_mode: str,
    dry_run: bool,
) -> LaunchOrchestrator:
    resolver = PolicyResolver(
        registry=config.registry,
        settings=_settings_store(config),
        prompter=TerminalPrompter(max_attempts=config.prompt_attempts),
        logger=logger.getChild("policy"),
    )
    spawner = AgentSpawner(logger=logger, launch_mode=launch_mode, dry_run=dry_run)  # type: ignore[arg-type]
    return LaunchOrchestrator(resolver, spawner, logger, registry=config.registry)


def _parse_kind_option(raw: Optional[str], param_hint: str = "--use") -> Optional[CredentialKind]:
    if raw is None:
        return None
    try:
        return CredentialKind.parse(raw)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=param_hint) from exc


def _parse_agent_command(command: Optional[str]) -> Optional[List[str]]:
    if command is None:
        return None
    parts = shlex.split(command)
    return parts or None


def _parse_agent_env(entries: Optional[List[str]]) -> Optional[Dict[str, str]]:
    if not entries:
        return None
    env: Dict[str, str] = {}
    for entry in entries:
        if "=" not in entry:
            raise typer.BadParameter(
                f"Environment override must be KEY=VALUE, received `{entry}`."
            )
        key, value = entry.split("=", 1)
        if not key:
            raise typer.BadParameter("Environment variable name cannot be empty.")
        env[key] = value
    return env


def _stdin_is_interactive() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration YAML (defaults to $AGENTAUTH_CONFIG or ~/.agentauth/config.yaml).",
    ),
) -> None:
    """Load configuration once and store it on the Typer context."""
    config_path = Path(config).expanduser() if config is not None else default_config_path()

    if config is not None or config_path.exists():
        try:
            loaded_config = load_config(config_path)
        except ConfigError as exc:
            typer.echo(f"Configuration error: {exc}", err=True)
            raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc
    else:
        loaded_config = build_default_config()

    ctx.obj = {"config": loaded_config, "config_path": config_path}


@app.command("version")
def version() -> None:
    """Display version information."""
    typer.echo(__version__)


@app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run(
    ctx: typer.Context,
    interactive: Optional[bool] = typer.Option(
        None,
        "--interactive/--non-interactive",
        help="Prompt when credentials compete (default: only when stdin is a terminal).",
    ),
    use: Optional[str] = typer.Option(
        None,
        "--use",
        "-u",
        help="Credential kind for this launch only (subscription or api_key).",
    ),
    agent_command: Optional[str] = typer.Option(
        None,
        "--agent-command",
        help="Override the agent command (example: --agent-command 'claude --model opus').",
    ),
    agent_env: Optional[List[str]] = typer.Option(
        None,
        "--agent-env",
        help="Override or add agent environment variables (repeat as KEY=VALUE).",
        metavar="KEY=VALUE",
    ),
    launch_mode: Optional[str] = typer.Option(
        None,
        "--launch-mode",
        help="'subprocess' waits for the agent; 'exec' replaces this process.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Increase console logging."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve credentials and print the command without launching."),
) -> None:
    """Launch the agent with exactly one credential channel visible."""
    config = _get_config(ctx)
    logger = _build_logger(config, verbose)

    if launch_mode is not None and launch_mode not in LAUNCH_MODES:
        raise typer.BadParameter(
            f"must be 'subprocess' or 'exec', got {launch_mode!r}.", param_hint="--launch-mode"
        )
    override = _parse_kind_option(use)
    env_override = dict(config.agent_launcher.env)
    env_override.update(_parse_agent_env(agent_env) or {})
    command = _parse_agent_command(agent_command) or list(config.agent_launcher.command)
    command.extend(ctx.args)

    orchestrator = _build_orchestrator(
        config,
        logger,
        launch_mode=launch_mode or config.agent_launcher.launch_mode,
        dry_run=dry_run,
    )
    allow_prompt = _stdin_is_interactive() if interactive is None else interactive

    try:
        result = orchestrator.launch(
            command,
            interactive=allow_prompt,
            override=override,
            env_overrides=env_override or None,
        )
    except SpawnError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_SPAWN_FAILED) from exc

    decision = result.decision
    if dry_run and decision is not None:
        suppressed = ", ".join(sorted(kind.value for kind in decision.suppress)) or "none"
        typer.echo(f"credential: {decision.effective_kind.value} ({decision.source.value})")
        typer.echo(f"suppressed: {suppressed}")
        return

    if result.process is not None:
        raise typer.Exit(code=result.process.wait())


@app.command("inspect")
def inspect_cmd(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Increase console logging."),
) -> None:
    """Show detected credentials and the decision a non-interactive launch would make."""
    config = _get_config(ctx)
    logger = _build_logger(config, verbose)
    orchestrator = _build_orchestrator(
        config, logger, launch_mode=config.agent_launcher.launch_mode, dry_run=True
    )
    result = orchestrator.preview(interactive=False)

    if not result.signals:
        typer.echo("No credentials detected.")
    for signal in result.signals:
        source = ", ".join(signal.variables) if signal.variables else "agent login (ambient)"
        typer.echo(f"{signal.kind.value:<14} {source}")

    decision = result.decision
    if decision is not None:
        suppressed = ", ".join(sorted(kind.value for kind in decision.suppress)) or "none"
        typer.echo(f"decision: {decision.effective_kind.value} ({decision.source.value})")
        typer.echo(f"suppressed: {suppressed}")


@preference_app.command("show")
def preference_show(ctx: typer.Context) -> None:
    """Print the stored preference, or 'none'."""
    config = _get_config(ctx)
    try:
        preference = load_preference(_settings_store(config))
    except PreferenceReadError as exc:
        typer.echo(f"Settings error: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETTINGS_CORRUPT) from exc
    kind = preference.prefer_effective_kind
    typer.echo(kind.value if kind is not None else "none")


@preference_app.command("set")
def preference_set(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="subscription or api_key"),
) -> None:
    """Store a preference used whenever credentials compete."""
    config = _get_config(ctx)
    try:
        parsed = CredentialKind.parse(kind)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="KIND") from exc
    if config.registry.channel_for(parsed) is None:
        raise typer.BadParameter(f"{parsed.value} has no configured channel.", param_hint="KIND")
    try:
        save_preference(_settings_store(config), parsed)
    except PreferenceWriteError as exc:
        typer.echo(f"Settings error: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETTINGS_UNWRITABLE) from exc
    typer.echo(f"Preference saved: {parsed.value}")


@preference_app.command("clear")
def preference_clear(ctx: typer.Context) -> None:
    """Remove the stored preference."""
    config = _get_config(ctx)
    try:
        clear_preference(_settings_store(config))
    except PreferenceWriteError as exc:
        typer.echo(f"Settings error: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETTINGS_UNWRITABLE) from exc
    typer.echo("Preference cleared.")
