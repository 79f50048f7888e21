"""Tests for JSON structured logging."""
import json
import logging
import sys


def _record(name: str, level: int, msg: str, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def test_json_formatter_outputs_valid_json() -> None:
    """JSONFormatter should produce valid JSON output."""
    from emoji_fusion.core.logging import JSONFormatter
    output = JSONFormatter().format(_record("test-service", logging.INFO, "test message"))
    assert isinstance(json.loads(output), dict)


def test_json_formatter_has_required_fields() -> None:
    """Log output must contain timestamp, level, service, message fields."""
    from emoji_fusion.core.logging import JSONFormatter
    output = JSONFormatter().format(_record("my-service", logging.WARNING, "something happened"))
    parsed = json.loads(output)

    assert "timestamp" in parsed
    assert parsed["level"] == "WARNING"
    assert parsed["service"] == "my-service"
    assert parsed["message"] == "something happened"


def test_json_formatter_includes_error_type_on_exception() -> None:
    """Log output should include error_type field when an exception is attached."""
    from emoji_fusion.core.logging import JSONFormatter
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()

    output = JSONFormatter().format(_record("error-service", logging.ERROR, "an error occurred", exc_info))
    parsed = json.loads(output)

    assert parsed["error_type"] == "ValueError"
    assert "test error" in parsed["error_detail"]


def test_json_formatter_includes_extra_fields() -> None:
    """Fields passed through `extra` should appear in the JSON output."""
    from emoji_fusion.core.logging import JSONFormatter
    record = _record("fusion", logging.INFO, "fusion done")
    record.client_id = "abc"
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["client_id"] == "abc"


def test_setup_logging_returns_logger() -> None:
    """setup_logging() should return a configured Logger instance."""
    from emoji_fusion.core.logging import setup_logging
    logger = setup_logging("test-app")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test-app"


def test_setup_logging_does_not_duplicate_handlers() -> None:
    from emoji_fusion.core.logging import setup_logging
    setup_logging("dup-app")
    logger = setup_logging("dup-app")
    assert len(logger.handlers) == 1


def test_json_formatter_keeps_colliding_extra_fields() -> None:
    """An extra named like a fixed field is renamed instead of overwriting it."""
    from emoji_fusion.core.logging import JSONFormatter
    record = _record("usage", logging.ERROR, "store down")
    record.component = "UsageGate"
    record.service = "Firestore"
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["service"] == "usage"
    assert parsed["extra_service"] == "Firestore"
    assert parsed["component"] == "UsageGate"


def test_extra_kwarg_reaches_json_output(capsys) -> None:
    from emoji_fusion.core.logging import setup_logging
    logger = setup_logging("extra-app")
    logger.warning("hello", extra={"component": "FusionClient", "error_type": "RuntimeError"})
    parsed = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert parsed["component"] == "FusionClient"
    assert parsed["error_type"] == "RuntimeError"


def test_module_loggers_emit_json() -> None:
    """Every module logger writes through the JSON handler."""
    import emoji_fusion.api.fusion  # noqa: F401
    import emoji_fusion.services.fusion_client  # noqa: F401
    import emoji_fusion.services.prompt  # noqa: F401
    import emoji_fusion.services.usage  # noqa: F401
    from emoji_fusion.core.logging import JSONFormatter

    for name in ("fusion_router", "fusion_client", "prompt", "usage"):
        handlers = logging.getLogger(name).handlers
        assert handlers, name
        assert any(isinstance(h.formatter, JSONFormatter) for h in handlers), name
