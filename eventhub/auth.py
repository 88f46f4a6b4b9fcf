"""Bearer API-key check for the website API."""

from __future__ import annotations

import hmac
import re

from fastapi import Request

from .errors import NotConfiguredError, UnauthorizedError

API_KEY_ENV = "EVENTHUB_WEBSITE_API_KEY"

_bearer_pattern = re.compile(r"^Bearer\s+(.+?)\s*$", re.IGNORECASE)


def read_bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization")
    if not header:
        return None
    match = _bearer_pattern.match(header)
    return match.group(1) if match else None


def check_api_key(expected: str | None, provided: str | None) -> None:
    """Raise unless ``provided`` matches the configured key."""
    if not expected:
        raise NotConfiguredError(f"{API_KEY_ENV} is not configured on this server")
    if not provided:
        raise UnauthorizedError("Missing API key")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid API key")


def require_website_api_key(request: Request) -> None:
    """FastAPI dependency guarding every website API route."""
    check_api_key(request.app.state.settings.website_api_key, read_bearer_token(request))
