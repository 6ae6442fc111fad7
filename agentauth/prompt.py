"""Interactive credential selection prompt."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

import typer

from .credentials import CredentialKind

DEFAULT_MAX_ATTEMPTS = 3

T = TypeVar("T")


class InvalidPromptInputError(ValueError):
    """Raised when a prompt response is not one of the recognised answers."""


@dataclass(frozen=True)
class PromptAnswer:
    kind: CredentialKind
    remember: bool = False


class Prompter(Protocol):
    def choose(self, kinds: Sequence[CredentialKind], default: CredentialKind) -> PromptAnswer: ...


def parse_choice(
    raw: str,
    kinds: Sequence[CredentialKind],
    default: CredentialKind,
) -> CredentialKind:
    """Map a menu response to a kind; empty input selects ``default``."""
    text = raw.strip()
    if not text:
        return default
    if text.isdigit() and 1 <= int(text) <= len(kinds):
        return kinds[int(text) - 1]
    raise InvalidPromptInputError(f"Please enter a number between 1 and {len(kinds)}.")


def parse_yes_no(raw: str, default: bool = False) -> bool:
    text = raw.strip().lower()
    if not text:
        return default
    if text in ("y", "yes"):
        return True
    if text in ("n", "no"):
        return False
    raise InvalidPromptInputError("Please answer y or n.")


@dataclass
class TerminalPrompter:
    """Numbered menu on the terminal.

    Invalid answers re-prompt up to ``max_attempts`` times before falling back
    to the default. A closed input stream falls back immediately.
    """

    read_line: Callable[[str], str] = input
    echo: Callable[[str], None] = typer.echo
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("agentauth.prompt"))

    def choose(self, kinds: Sequence[CredentialKind], default: CredentialKind) -> PromptAnswer:
        options: List[CredentialKind] = list(kinds)
        if default not in options:
            options.append(default)

        self.echo("Multiple credentials are available to the agent:")
        for index, kind in enumerate(options, 1):
            marker = " (default)" if kind is default else ""
            self.echo(f"  {index}. {kind.label}{marker}")

        kind = self._ask(
            f"Select credential [1-{len(options)}, Enter for default]: ",
            lambda raw: parse_choice(raw, options, default),
            default,
        )
        remember = self._ask(
            "Remember this choice for future launches? [y/N]: ",
            parse_yes_no,
            False,
        )
        return PromptAnswer(kind=kind, remember=remember)

    def _ask(self, message: str, parse: Callable[[str], T], fallback: T) -> T:
        for _ in range(max(self.max_attempts, 1)):
            raw = self._read(message)
            if raw is None:
                self.logger.warning("Input closed; using default answer.")
                return fallback
            try:
                return parse(raw)
            except InvalidPromptInputError as exc:
                self.echo(str(exc))
        self.logger.warning(
            "No valid answer after %d attempts; using default answer.", self.max_attempts
        )
        return fallback

    def _read(self, message: str) -> Optional[str]:
        try:
            return self.read_line(message)
        except EOFError:
            return None
