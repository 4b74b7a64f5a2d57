"""OpenAPI customization.

Adds the ``X-API-Key`` security scheme (optional on most routes, since
anonymous callers are rate limited by IP), tag descriptions, and documents
the rate limit response headers.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Uploads", "description": "File uploads (10 per minute per caller)."},
    {"name": "Health Data", "description": "Routes behind the health data access guard."},
    {"name": "Security", "description": "Abuse escalation status and account flags."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]

_RATE_LIMIT_HEADERS = {
    "X-RateLimit-Limit": {"description": "Requests allowed per window.", "schema": {"type": "integer"}},
    "X-RateLimit-Remaining": {"description": "Requests left in the window.", "schema": {"type": "integer"}},
    "X-RateLimit-Reset": {"description": "UNIX time when the window resets.", "schema": {"type": "integer"}},
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with auth, tags and header docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Identifies the caller; omit for anonymous, IP-limited access.",
            },
        )
        # Empty requirement first: the key is optional
        schema.setdefault("security", [{}, {"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                if path.startswith("/health"):
                    operation["security"] = []
                    continue
                ok = operation.get("responses", {}).get("200")
                if ok is not None:
                    ok.setdefault("headers", {}).update(_RATE_LIMIT_HEADERS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
