"""Agent process spawning."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import List, Literal, Mapping, Optional, Sequence

LaunchMode = Literal["subprocess", "exec"]
LAUNCH_MODES = ("subprocess", "exec")


class SpawnError(RuntimeError):
    """Raised when the agent process cannot be started."""

    def __init__(self, message: str, command: Sequence[str]):
        super().__init__(message)
        self.command = list(command)


@dataclass
class SpawnedProcess:
    """Handle for a launched agent.

    ``process`` is ``None`` for dry runs.
    """

    command: List[str]
    process: Optional["subprocess.Popen[bytes]"] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def wait(self) -> int:
        if self.process is None:
            return 0
        return self.process.wait()


def _format_display(args: Sequence[str]) -> str:
    return shlex.join(list(args))


@dataclass
class AgentSpawner:
    """Start the agent with an explicit environment.

    ``subprocess`` mode returns a handle to the child. ``exec`` mode replaces
    the current process and only returns by raising :class:`SpawnError`.
    """

    logger: logging.Logger
    launch_mode: LaunchMode = "subprocess"
    dry_run: bool = False

    def spawn(
        self,
        command: Sequence[str],
        *,
        env: Mapping[str, str],
        cwd: Optional[str] = None,
    ) -> SpawnedProcess:
        args = list(command)
        if not args:
            raise SpawnError("Agent command is empty.", args)

        if self.dry_run:
            self.logger.info("DRY-RUN: %s", _format_display(args))
            return SpawnedProcess(command=args)

        self.logger.info("Starting agent command: %s", _format_display(args))

        if self.launch_mode == "exec":
            self._exec(args, env=env, cwd=cwd)

        try:
            process = subprocess.Popen(args, env=dict(env), cwd=cwd)
        except OSError as exc:
            raise SpawnError(f"Failed to start {args[0]}: {exc.strerror or exc}", args) from exc
        self.logger.debug("Agent started with pid %s", process.pid)
        return SpawnedProcess(command=args, process=process)

    def _exec(self, args: List[str], *, env: Mapping[str, str], cwd: Optional[str]) -> None:
        self.logger.debug("Exec'ing agent (replaces current process): %s", args)
        original_cwd = os.getcwd()
        try:
            if cwd is not None:
                os.chdir(cwd)
            os.execvpe(args[0], args, dict(env))
        except OSError as exc:
            os.chdir(original_cwd)
            raise SpawnError(f"Failed to exec {args[0]}: {exc.strerror or exc}", args) from exc
