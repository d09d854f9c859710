"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A shared ``ErrorResponse`` component describing the error envelope
- Documented 400/429/500 responses on every versioned operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from shopgate.core.errors import ErrorKind, Severity

ERROR_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["success", "error"],
    "properties": {
        "success": {"type": "boolean", "enum": [False]},
        "error": {
            "type": "object",
            "required": ["code", "message", "severity", "timestamp"],
            "properties": {
                "code": {"type": "string", "enum": [kind.value for kind in ErrorKind]},
                "message": {"type": "string"},
                "severity": {"type": "string", "enum": [s.value for s in Severity]},
                "timestamp": {"type": "string", "format": "date-time"},
                "request_id": {"type": "string", "nullable": True},
                "details": {"type": "object"},
            },
        },
    },
}

_ERROR_RESPONSES = {
    "400": "Request validation failed (VALIDATION_ERROR).",
    "429": "Rate limit exceeded (RATE_LIMIT_ERROR); see Retry-After.",
    "500": "Unexpected server error.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and error responses.

    - Adds tags metadata if not present
    - Registers ``components.schemas.ErrorResponse``
    - Documents the error envelope on every ``/v1`` operation, replacing
      FastAPI's default 422 response (those errors are returned as 400)
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("schemas", {}).setdefault("ErrorResponse", ERROR_RESPONSE_SCHEMA)

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Tokens", "description": "Per-shop order API token registration."},
            {"name": "Orders", "description": "Orders fetched from the order backend."},
            {"name": "Rate limit", "description": "Introspection of rate limit windows."},
            {"name": "Health", "description": "Liveness and readiness checks."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        error_ref = {"$ref": "#/components/schemas/ErrorResponse"}
        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/v1/"):
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                responses.pop("422", None)
                for status, description in _ERROR_RESPONSES.items():
                    responses.setdefault(
                        status,
                        {"description": description, "content": {"application/json": {"schema": error_ref}}},
                    )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
