from __future__ import annotations

import json
import logging

from lms.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int = logging.INFO, msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="svc.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_third_party_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_container_formatter_location_only_for_warning() -> None:
    fmt = _ContainerFormatter()
    assert "[svc.py:42]" not in fmt.format(_record(logging.INFO))
    assert "[svc.py:42]" in fmt.format(_record(logging.WARNING))


def test_json_formatter_promotes_domain_fields() -> None:
    fmt = _JsonFormatter()
    line = fmt.format(
        _record(
            msg="Lecture completed",
            request_id="req-1",
            user_id="u1",
            course_id="c1",
            lecture_id="l1",
        )
    )
    payload = json.loads(line)
    assert payload["message"] == "Lecture completed"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-1"
    assert payload["course_id"] == "c1"
    assert payload["lecture_id"] == "l1"
    assert "module_id" not in payload
