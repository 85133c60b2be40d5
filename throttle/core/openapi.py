"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A documented 429 response carrying the rate limit headers on every
  throttled operation (exempt paths are left untouched)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from fastapi import FastAPI

_HEADER_DESCRIPTIONS = {
    "limit": "Maximum number of requests allowed per interval.",
    "remaining": "Requests left in the current interval.",
    "reset": "UNIX epoch second at which the current interval ends.",
}


def _rate_limit_headers_schema(header_names: Mapping[str, str]) -> Dict[str, Any]:
    return {
        name: {
            "description": _HEADER_DESCRIPTIONS[role],
            "schema": {"type": "string"},
        }
        for role, name in header_names.items()
        if role in _HEADER_DESCRIPTIONS
    }


def apply_openapi_customizations(
    app: FastAPI,
    *,
    header_names: Mapping[str, str] | None,
    exempt_paths: Iterable[str] = (),
    status_code: int = 429,
) -> None:
    """Patch FastAPI's OpenAPI generation to document throttling.

    Args:
        app: Application whose schema is patched.
        header_names: Configured rate limit header names (None: undocumented).
        exempt_paths: Paths that are never throttled.
        status_code: Rejection status code.
    """

    original_openapi = app.openapi
    exempt = set(exempt_paths)

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Quota",
                "description": "Inspect the caller's rate limit quota.",
            },
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        headers = _rate_limit_headers_schema(header_names or {})
        rejection = {
            "description": "Rate limit exceeded",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "rate_limit_exceeded",
                            "message": "Rate limit exceeded",
                            "request_id": "b3f0c7e2-0d51-4a1e-9c1f-1f7e8a3d2c10",
                        }
                    }
                }
            },
        }
        if headers:
            rejection["headers"] = headers

        for path, methods in schema.get("paths", {}).items():
            if path in exempt:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    responses = method_obj.setdefault("responses", {})
                    responses.setdefault(str(status_code), rejection)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
