import logging
from pathlib import Path

from agentauth.logging_utils import REDACTED, RedactCredentialsFilter, setup_logger


def test_filter_masks_secret_in_formatted_message() -> None:
    record = logging.LogRecord("agentauth", logging.INFO, __file__, 1, "value=%s", ("sk-ant-api03-secret",), None)

    RedactCredentialsFilter(["sk-ant-api03-secret"]).filter(record)

    assert record.getMessage() == f"value={REDACTED}"


def test_filter_ignores_short_values() -> None:
    redact = RedactCredentialsFilter(["1", "", "abc"])
    assert redact.secrets == []


def test_from_environment_reads_named_variables() -> None:
    redact = RedactCredentialsFilter.from_environment(
        {"ANTHROPIC_API_KEY": "sk-ant-api03-secret", "PATH": "/usr/local/bin"},
        ["ANTHROPIC_API_KEY", "CLAUDE_CODE_OAUTH_TOKEN"],
    )
    assert redact.secrets == ["sk-ant-api03-secret"]


def test_file_log_is_private_and_redacted(tmp_path: Path) -> None:
    redact = RedactCredentialsFilter(["sk-ant-api03-secret"])
    logger = setup_logger("agentauth.logtest", tmp_path / "logs", verbose=True, redact=redact)

    logger.getChild("policy").info("leaked %s", "sk-ant-api03-secret")
    for handler in logger.handlers:
        handler.flush()

    log_path = tmp_path / "logs" / "agentauth.logtest.log"
    content = log_path.read_text(encoding="utf-8")
    assert "sk-ant-api03-secret" not in content
    assert REDACTED in content
    assert log_path.stat().st_mode & 0o777 == 0o600


def test_setup_logger_replaces_handlers() -> None:
    first = setup_logger("agentauth.replace", None, verbose=False)
    second = setup_logger("agentauth.replace", None, verbose=True)

    assert first is second
    assert len(second.handlers) == 1
    assert second.handlers[0].level == logging.DEBUG
