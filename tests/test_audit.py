"""Tests for the fire-and-forget security audit logger."""

import logging

from kosmoguard.core.audit import AuditLogger, salted_hash


def test_security_channel_writes_to_security_logger(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="kosmoguard.security"):
        AuditLogger().log("security", logging.WARNING, "rate_limit.exceeded", {"limiter": "api"})

    record = next(r for r in caplog.records if r.getMessage() == "rate_limit.exceeded")
    assert record.name == "kosmoguard.security"
    assert record.levelno == logging.WARNING
    assert record.limiter == "api"
    assert record.channel == "security"
    assert record.timestamp_utc


def test_other_channels_are_children_of_security(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="kosmoguard.security"):
        AuditLogger().log("compliance", logging.INFO, "security.health_data_access")

    record = next(r for r in caplog.records if r.getMessage() == "security.health_data_access")
    assert record.name == "kosmoguard.security.compliance"


def test_logging_failure_never_propagates(caplog) -> None:
    # "message" clashes with a LogRecord attribute, so the write itself fails
    with caplog.at_level(logging.ERROR, logger="kosmoguard.audit"):
        AuditLogger().log("security", logging.WARNING, "broken_event", {"message": "boom"})

    failure = next(r for r in caplog.records if r.getMessage() == "audit.write_failed")
    assert failure.audit_event == "broken_event"
    assert failure.error_type == "KeyError"


def test_salted_hash_hides_value_and_is_stable() -> None:
    digest = salted_hash("10.0.0.1")

    assert digest == salted_hash("10.0.0.1")
    assert digest != salted_hash("10.0.0.2")
    assert "10.0.0.1" not in digest
    assert len(digest) == 64
