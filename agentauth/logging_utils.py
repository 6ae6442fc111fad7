"""Logging helpers for agentauth."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

REDACTED = "[REDACTED]"
# Short values would mask ordinary words in log output.
_MIN_SECRET_LENGTH = 8


class RedactCredentialsFilter(logging.Filter):
    """Mask credential values that end up in log messages."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self.secrets = sorted(
            {value for value in secrets if value and len(value) >= _MIN_SECRET_LENGTH},
            key=len,
            reverse=True,
        )

    @classmethod
    def from_environment(
        cls, environ: Mapping[str, str], variables: Iterable[str]
    ) -> "RedactCredentialsFilter":
        return cls(environ.get(name, "") for name in variables)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _private_log_file(log_dir: Path, name: str) -> Path:
    """Create ``log_dir`` (mode 0700) and return the path of a 0600 log file."""
    log_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
    safe_name = re.sub(r"[^\w.-]", "_", name)
    log_path = log_dir / f"{safe_name}.log"
    log_path.touch(mode=0o600, exist_ok=True)
    try:
        os.chmod(log_dir, 0o700)
        os.chmod(log_path, 0o600)
    except PermissionError:
        logging.getLogger(name).warning("Unable to restrict permissions on %s", log_path)
    return log_path


def setup_logger(
    name: str,
    log_dir: Optional[Path],
    verbose: bool,
    *,
    redact: Optional[RedactCredentialsFilter] = None,
) -> logging.Logger:
    """Configure ``name`` for a launch.

    Console output is INFO (DEBUG with ``verbose``); a private file under
    ``log_dir`` always receives DEBUG. The redaction filter sits on every
    handler so records propagated from child loggers are masked as well.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    handlers: List[logging.Handler] = []
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handlers.append(console)

    if log_dir is not None:
        file_handler = logging.FileHandler(_private_log_file(log_dir, name))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
        handlers.append(file_handler)

    for handler in handlers:
        if redact is not None:
            handler.addFilter(redact)
        logger.addHandler(handler)
    return logger
