"""Security audit logging.

Audit events are fire-and-forget: a failure to record one must never change
the outcome of the request that produced it.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from kosmoguard.core.config import settings
from kosmoguard.core.logging import SECURITY_LOGGER_NAME

logger = logging.getLogger("kosmoguard.audit")


def salted_hash(value: str | None) -> str:
    """SHA-256 of ``value`` salted with the application secret."""

    return hashlib.sha256(f"{value or ''}{settings.app.secret_key}".encode()).hexdigest()


class AuditLogger:
    """Writes structured security events to named channels.

    The ``security`` channel maps to the ``kosmoguard.security`` logger; any
    other channel name becomes a child of it.
    """

    def _channel_logger(self, channel: str) -> logging.Logger:
        if channel == "security":
            return logging.getLogger(SECURITY_LOGGER_NAME)
        return logging.getLogger(f"{SECURITY_LOGGER_NAME}.{channel}")

    def log(
        self,
        channel: str,
        level: int,
        event: str,
        fields: Mapping[str, Any] | None = None,
    ) -> None:
        try:
            extra = dict(fields or {})
            extra.setdefault("timestamp_utc", datetime.now(timezone.utc).isoformat())
            extra["channel"] = channel
            self._channel_logger(channel).log(level, event, extra=extra)
        except Exception as exc:
            logger.error(
                "audit.write_failed",
                extra={
                    "audit_event": event,
                    "channel": channel,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )


audit_logger = AuditLogger()
