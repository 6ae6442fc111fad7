"""Credential kinds and environment inspection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Tuple


class CredentialKind(Enum):
    """Known credential channels for an agent launch."""

    SUBSCRIPTION_SESSION = "subscription"
    API_KEY = "api_key"

    @property
    def label(self) -> str:
        return _KIND_LABELS.get(self, self.value)

    @classmethod
    def parse(cls, raw: str) -> "CredentialKind":
        """Resolve a kind from its value or member name (case-insensitive)."""
        normalized = raw.strip().lower().replace("-", "_")
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        choices = ", ".join(kind.value for kind in cls)
        raise ValueError(f"Unknown credential kind {raw!r}; expected one of: {choices}.")


_KIND_LABELS = {
    CredentialKind.SUBSCRIPTION_SESSION: "Subscription session",
    CredentialKind.API_KEY: "API key",
}


@dataclass(frozen=True)
class CredentialChannel:
    """Environment variables backing a credential kind.

    ``ambient`` channels are resolvable by the agent without any variable
    (e.g. a login stored in the agent's own keychain), so they always count
    as present.
    """

    kind: CredentialKind
    variables: Tuple[str, ...] = ()
    ambient: bool = False


@dataclass(frozen=True)
class CredentialRegistry:
    """Ordered set of channels, highest agent-side precedence first."""

    channels: Tuple[CredentialChannel, ...]
    default_kind: CredentialKind = CredentialKind.SUBSCRIPTION_SESSION

    def __post_init__(self) -> None:
        kinds = [channel.kind for channel in self.channels]
        if len(set(kinds)) != len(kinds):
            raise ValueError("Credential channels must not repeat a kind.")
        if self.default_kind not in kinds:
            raise ValueError(
                f"Default kind {self.default_kind.value!r} has no configured channel."
            )

    @property
    def kinds(self) -> List[CredentialKind]:
        return [channel.kind for channel in self.channels]

    def channel_for(self, kind: CredentialKind) -> Optional[CredentialChannel]:
        for channel in self.channels:
            if channel.kind is kind:
                return channel
        return None

    def variables_for(self, kinds: Iterable[CredentialKind]) -> Tuple[str, ...]:
        names: List[str] = []
        for kind in kinds:
            channel = self.channel_for(kind)
            if channel is not None:
                names.extend(channel.variables)
        return tuple(names)

    def all_variables(self) -> Tuple[str, ...]:
        return self.variables_for(self.kinds)


DEFAULT_REGISTRY = CredentialRegistry(
    channels=(
        CredentialChannel(
            kind=CredentialKind.API_KEY,
            variables=("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN"),
        ),
        CredentialChannel(
            kind=CredentialKind.SUBSCRIPTION_SESSION,
            variables=("CLAUDE_CODE_OAUTH_TOKEN",),
            ambient=True,
        ),
    ),
    default_kind=CredentialKind.SUBSCRIPTION_SESSION,
)


@dataclass(frozen=True)
class CredentialSignal:
    """A credential kind observed during inspection."""

    kind: CredentialKind
    present: bool
    variables: Tuple[str, ...] = field(default=())

    @property
    def suppressible(self) -> bool:
        return bool(self.variables)


def _is_set(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def inspect_signals(
    environ: Mapping[str, str],
    registry: CredentialRegistry = DEFAULT_REGISTRY,
) -> List[CredentialSignal]:
    """Return the present credential signals in registry order.

    Empty or whitespace-only values are treated as unset.
    """
    signals: List[CredentialSignal] = []
    for channel in registry.channels:
        set_vars = tuple(name for name in channel.variables if _is_set(environ.get(name)))
        if set_vars or channel.ambient:
            signals.append(CredentialSignal(kind=channel.kind, present=True, variables=set_vars))
    return signals


def present_kinds(signals: Iterable[CredentialSignal]) -> List[CredentialKind]:
    return [signal.kind for signal in signals if signal.present]
