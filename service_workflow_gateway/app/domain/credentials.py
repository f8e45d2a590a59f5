"""
Normalization of stored upstream credentials.
"""

from typing import Optional

from shared.errors import ConfigurationError

VENDOR_PREFIX = "api "
BEARER_PREFIX = "Bearer "


def normalize_credential(raw: Optional[str]) -> str:
    """Turn a stored credential into the exact ``Authorization`` header value.

    Users store tokens as a bare key, as ``"api <key>"`` or as a ready
    ``"Bearer <key>"`` header value. The result always carries exactly one
    ``Bearer`` prefix and normalizing twice is a no-op.
    """
    if not raw:
        raise ConfigurationError("Workflow credential is empty")

    token = raw
    if token.startswith(VENDOR_PREFIX):
        token = token[len(VENDOR_PREFIX):]

    if token.startswith(BEARER_PREFIX):
        return token
    return f"{BEARER_PREFIX}{token}"


def mask_credential(value: Optional[str], visible: int = 4) -> str:
    """Log-safe preview of a credential."""
    if not value:
        return "<empty>"
    token = value[len(BEARER_PREFIX):] if value.startswith(BEARER_PREFIX) else value
    if len(token) <= visible * 2:
        return "***"
    return f"{token[:visible]}...{token[-visible:]}"
