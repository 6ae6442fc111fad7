"""Credential selection policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence

from .credentials import DEFAULT_REGISTRY, CredentialKind, CredentialRegistry, CredentialSignal
from .prompt import Prompter
from .settings import (
    PreferenceReadError,
    PreferenceWriteError,
    SettingsProvider,
    UserPreference,
    load_preference,
    save_preference,
)


class DecisionSource(Enum):
    """Which rule produced a decision."""

    SINGLE = "single"
    OVERRIDE = "override"
    PREFERENCE = "preference"
    PROMPT = "prompt"
    LEGACY = "legacy"


@dataclass(frozen=True)
class CredentialDecision:
    """Outcome of resolving one launch."""

    effective_kind: CredentialKind
    suppress: FrozenSet[CredentialKind] = field(default_factory=frozenset)
    source: DecisionSource = DecisionSource.SINGLE

    def __post_init__(self) -> None:
        if self.effective_kind in self.suppress:
            raise ValueError(
                f"Effective kind {self.effective_kind.value!r} cannot also be suppressed."
            )


@dataclass
class PolicyResolver:
    """Combine signals, preference and operator input into a decision.

    The stored preference is read at most once per call to :meth:`resolve`,
    and only when the present signals compete.
    """

    registry: CredentialRegistry = DEFAULT_REGISTRY
    settings: Optional[SettingsProvider] = None
    prompter: Optional[Prompter] = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("agentauth.policy"))

    def resolve(
        self,
        signals: Sequence[CredentialSignal],
        *,
        interactive: bool,
        override: Optional[CredentialKind] = None,
    ) -> CredentialDecision:
        present = [signal for signal in signals if signal.present]

        if len(present) <= 1:
            kind = present[0].kind if present else self.registry.default_kind
            self.logger.debug("No competing credentials; using %s.", kind.value)
            return CredentialDecision(effective_kind=kind, source=DecisionSource.SINGLE)

        kinds = [signal.kind for signal in present]
        self.logger.debug("Competing credentials: %s", ", ".join(k.value for k in kinds))

        if override is not None:
            if override in kinds:
                return self._prefer(override, present, DecisionSource.OVERRIDE)
            self.logger.warning(
                "Requested credential %s is not available; ignoring.", override.value
            )

        preferred = self._read_preference().prefer_effective_kind
        if preferred is not None:
            if preferred in kinds:
                return self._prefer(preferred, present, DecisionSource.PREFERENCE)
            self.logger.warning(
                "Stored preference %s is not available in this environment; ignoring.",
                preferred.value,
            )

        if interactive and self.prompter is not None:
            return self._ask_operator(self.prompter, kinds, present)

        legacy = kinds[0]
        self.logger.info(
            "Non-interactive launch without a stored preference; leaving credentials "
            "untouched (agent will use %s).",
            legacy.value,
        )
        return CredentialDecision(effective_kind=legacy, source=DecisionSource.LEGACY)

    def _prefer(
        self,
        kind: CredentialKind,
        present: Sequence[CredentialSignal],
        source: DecisionSource,
    ) -> CredentialDecision:
        suppress = frozenset(
            signal.kind for signal in present if signal.kind is not kind and signal.suppressible
        )
        self.logger.info(
            "Using %s credentials (%s); suppressing: %s",
            kind.value,
            source.value,
            ", ".join(sorted(k.value for k in suppress)) or "nothing",
        )
        return CredentialDecision(effective_kind=kind, suppress=suppress, source=source)

    def _ask_operator(
        self,
        prompter: Prompter,
        kinds: List[CredentialKind],
        present: Sequence[CredentialSignal],
    ) -> CredentialDecision:
        default = self.registry.default_kind
        answer = prompter.choose(kinds, default)
        kind = answer.kind if answer.kind in kinds else default
        if answer.remember:
            self._write_preference(kind)
        return self._prefer(kind, present, DecisionSource.PROMPT)

    def _read_preference(self) -> UserPreference:
        if self.settings is None:
            return UserPreference()
        try:
            return load_preference(self.settings)
        except PreferenceReadError as exc:
            self.logger.warning("Ignoring stored credential preference: %s", exc)
            return UserPreference()

    def _write_preference(self, kind: CredentialKind) -> None:
        if self.settings is None:
            self.logger.warning("No settings store configured; preference not saved.")
            return
        try:
            save_preference(self.settings, kind)
        except PreferenceWriteError as exc:
            self.logger.warning("Credential preference not saved: %s", exc)
        else:
            self.logger.info("Saved credential preference: %s", kind.value)
