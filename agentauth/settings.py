"""Persisted user settings, including the credential preference."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .credentials import CredentialKind

PREFERENCE_KEY = "credentials.prefer_effective_kind"
DEFAULT_SETTINGS_PATH = Path("~/.agentauth/settings.json")


class SettingsError(RuntimeError):
    """Base class for settings store failures."""


class PreferenceReadError(SettingsError):
    """Raised when the settings store cannot be read or parsed."""


class PreferenceWriteError(SettingsError):
    """Raised when the settings store cannot be written."""


class SettingsProvider(Protocol):
    """Key/value store consulted for the credential preference.

    Implementations should raise :class:`PreferenceReadError` from ``get`` and
    :class:`PreferenceWriteError` from ``set``. A bare ``OSError`` is also
    tolerated and converted by the preference helpers below.
    """

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class JsonSettingsStore:
    """Key/value settings backed by a single JSON document.

    The file is re-read on every ``get`` so concurrent launches observe the
    latest saved value. Writes replace the file atomically; the last writer
    wins.
    """

    path: Path

    @classmethod
    def default(cls) -> "JsonSettingsStore":
        return cls(DEFAULT_SETTINGS_PATH.expanduser())

    def _load(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError both land here.
            raise PreferenceReadError(f"Settings file {self.path} is corrupt: {exc}") from exc
        except OSError as exc:
            raise PreferenceReadError(f"Unable to read settings file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise PreferenceReadError(f"Settings file {self.path} must contain a JSON object.")
        return data

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._load()
        except PreferenceReadError:
            # Overwrite a corrupt document rather than refusing to save.
            data = {}
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write(data)

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".settings-", suffix=".json", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2, sort_keys=True)
                    handle.write("\n")
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PreferenceWriteError(f"Unable to write settings file {self.path}: {exc}") from exc


@dataclass(frozen=True)
class UserPreference:
    """Global preference for which credential kind an agent should use."""

    prefer_effective_kind: Optional[CredentialKind] = None
    scope: str = "global"


def load_preference(settings: SettingsProvider) -> UserPreference:
    """Read the stored preference.

    Raises :class:`PreferenceReadError` when the store fails. An unknown or
    malformed stored value is treated as no preference.
    """
    try:
        raw = settings.get(PREFERENCE_KEY)
    except OSError as exc:
        raise PreferenceReadError(f"Unable to read settings: {exc}") from exc
    if isinstance(raw, dict):
        raw = raw.get("kind")
    if not isinstance(raw, str):
        return UserPreference()
    try:
        return UserPreference(prefer_effective_kind=CredentialKind.parse(raw))
    except ValueError:
        return UserPreference()


def _store(settings: SettingsProvider, value: Any) -> None:
    try:
        settings.set(PREFERENCE_KEY, value)
    except OSError as exc:
        raise PreferenceWriteError(f"Unable to write settings: {exc}") from exc


def save_preference(settings: SettingsProvider, kind: CredentialKind) -> None:
    _store(settings, {"kind": kind.value, "decided_at": _utc_now_iso()})


def clear_preference(settings: SettingsProvider) -> None:
    _store(settings, None)
