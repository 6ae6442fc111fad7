"""Launch sequencing: inspect, resolve, project, spawn."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .credentials import (
    DEFAULT_REGISTRY,
    CredentialKind,
    CredentialRegistry,
    CredentialSignal,
    inspect_signals,
)
from .environment import project_environment, suppressed_overrides
from .policy import CredentialDecision, PolicyResolver
from .spawner import AgentSpawner, SpawnedProcess, SpawnError


class LaunchState(Enum):
    IDLE = "idle"
    INSPECTING = "inspecting"
    RESOLVING = "resolving"
    PROJECTING = "projecting"
    SPAWNING = "spawning"
    SPAWNED = "spawned"
    FAILED = "failed"


@dataclass
class LaunchResult:
    """Record of a single launch attempt."""

    state: LaunchState = LaunchState.IDLE
    history: List[LaunchState] = field(default_factory=lambda: [LaunchState.IDLE])
    signals: List[CredentialSignal] = field(default_factory=list)
    decision: Optional[CredentialDecision] = None
    environment: Dict[str, str] = field(default_factory=dict)
    process: Optional[SpawnedProcess] = None
    error: Optional[SpawnError] = None

    def advance(self, state: LaunchState) -> None:
        if state in self.history:
            raise RuntimeError(f"Launch already passed through {state.value}.")
        self.state = state
        self.history.append(state)


class LaunchOrchestrator:
    """Run one agent launch with the selected credential channel only."""

    def __init__(
        self,
        resolver: PolicyResolver,
        spawner: AgentSpawner,
        logger: logging.Logger,
        registry: CredentialRegistry = DEFAULT_REGISTRY,
    ) -> None:
        self.resolver = resolver
        self.spawner = spawner
        self.logger = logger
        self.registry = registry

    def launch(
        self,
        command: Sequence[str],
        *,
        environ: Optional[Mapping[str, str]] = None,
        interactive: bool = True,
        override: Optional[CredentialKind] = None,
        env_overrides: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
    ) -> LaunchResult:
        """Launch ``command``.

        :class:`SpawnError` propagates unchanged after the result is marked
        failed; it is never retried.
        """
        result = LaunchResult()
        parent = dict(os.environ if environ is None else environ)

        self._enter(result, LaunchState.INSPECTING)
        result.signals = inspect_signals(parent, self.registry)

        self._enter(result, LaunchState.RESOLVING)
        decision = self.resolver.resolve(
            result.signals,
            interactive=interactive,
            override=override,
        )
        result.decision = decision

        self._enter(result, LaunchState.PROJECTING)
        dropped = suppressed_overrides(env_overrides, decision, self.registry)
        if dropped:
            self.logger.warning(
                "Ignoring environment overrides for suppressed credentials: %s",
                ", ".join(dropped),
            )
        result.environment = project_environment(
            parent, decision, self.registry, overrides=env_overrides
        )

        self._enter(result, LaunchState.SPAWNING)
        try:
            result.process = self.spawner.spawn(command, env=result.environment, cwd=cwd)
        except SpawnError as exc:
            result.error = exc
            self._enter(result, LaunchState.FAILED)
            self.logger.error("%s", exc)
            raise

        self._enter(result, LaunchState.SPAWNED)
        return result

    def preview(
        self,
        *,
        environ: Optional[Mapping[str, str]] = None,
        interactive: bool = False,
        override: Optional[CredentialKind] = None,
    ) -> LaunchResult:
        """Inspect, resolve and project without spawning."""
        result = LaunchResult()
        parent = dict(os.environ if environ is None else environ)
        self._enter(result, LaunchState.INSPECTING)
        result.signals = inspect_signals(parent, self.registry)
        self._enter(result, LaunchState.RESOLVING)
        result.decision = self.resolver.resolve(
            result.signals, interactive=interactive, override=override
        )
        self._enter(result, LaunchState.PROJECTING)
        result.environment = project_environment(parent, result.decision, self.registry)
        return result

    def _enter(self, result: LaunchResult, state: LaunchState) -> None:
        self.logger.debug("Launch state: %s -> %s", result.state.value, state.value)
        result.advance(state)
