"""Pydantic schemas for the security and upload endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitErrorResponse(BaseModel):
    """Body returned with HTTP 429 when a limiter rejects a request."""

    error: str = Field(..., description="Short error label.")
    message: str = Field(..., description="Human-readable explanation.")
    retry_after: int = Field(..., description="Seconds to wait before retrying.")
    limit: int = Field(..., description="Requests allowed per window.")
    remaining: int = Field(0, description="Always 0 on rejection.")


class UploadResponse(BaseModel):
    """Metadata of an accepted upload."""

    file_name: str | None = Field(default=None, description="Client-supplied filename.")
    content_type: str | None = Field(default=None, description="Client-supplied MIME type.")
    size_bytes: int = Field(..., description="Number of bytes received.")
    sha256: str = Field(..., description="SHA-256 hex digest of the content.")


class HealthDataAccessResponse(BaseModel):
    """Confirmation that the caller passed the health data guard."""

    status: str = Field("granted", description="Always 'granted' on success.")
    user_id: int = Field(..., description="Authenticated user id.")


class SecurityStatusResponse(BaseModel):
    """The caller's current abuse escalation state."""

    actor_type: str = Field(..., description="'user' or 'ip'.")
    violations_24h: int = Field(..., description="Rate limit violations in the rolling 24h window.")
    suspicious: bool = Field(..., description="Whether the suspicious flag is set.")
    suspicious_expires_in: int | None = Field(
        default=None, description="Seconds until the suspicious flag expires."
    )
    account_flagged: bool = Field(..., description="Whether an admin account flag is set.")


class AccountFlagResponse(BaseModel):
    """Result of setting or clearing an account security flag."""

    user_id: int
    account_flagged: bool
    ttl_seconds: int | None = None
