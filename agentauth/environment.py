"""Child-process environment projection."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from .credentials import DEFAULT_REGISTRY, CredentialRegistry
from .policy import CredentialDecision


def suppressed_variables(
    decision: CredentialDecision,
    registry: CredentialRegistry = DEFAULT_REGISTRY,
) -> frozenset:
    """Return every variable name backing a suppressed kind."""
    return frozenset(registry.variables_for(decision.suppress))


def project_environment(
    parent: Mapping[str, str],
    decision: CredentialDecision,
    registry: CredentialRegistry = DEFAULT_REGISTRY,
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Build the environment handed to the agent process.

    ``parent`` is never modified. Overrides are merged before suppression, so
    they cannot reintroduce a suppressed variable.
    """
    blocked = suppressed_variables(decision, registry)
    projected: Dict[str, str] = {}
    for key, value in parent.items():
        if key not in blocked:
            projected[key] = value
    if overrides:
        for key, value in overrides.items():
            if key not in blocked:
                projected[key] = value
    return projected


def suppressed_overrides(
    overrides: Optional[Mapping[str, str]],
    decision: CredentialDecision,
    registry: CredentialRegistry = DEFAULT_REGISTRY,
) -> List[str]:
    """Names of overrides dropped because they back a suppressed kind."""
    if not overrides:
        return []
    blocked = suppressed_variables(decision, registry)
    return sorted(key for key in overrides if key in blocked)
