"""
Mapping of upstream workflow responses onto the gateway envelope.
"""

import json
from typing import Any, Dict

from shared.errors import TransformError
from shared.logging import get_logger

from .parameters import reject_json_constant

logger = get_logger("workflow_gateway.transformer")

TRANSFORM_FAILED_MESSAGE = "transform failed"


def _decode_data(data: Any) -> Any:
    if not isinstance(data, str) or not data:
        return data
    try:
        return json.loads(data, parse_constant=reject_json_constant)
    except ValueError as exc:
        logger.warning("Upstream data field is not JSON, keeping string", error=str(exc))
        return data


def _build_envelope(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise TransformError(details={"type": type(raw).__name__})

    envelope: Dict[str, Any] = {
        "success": True,
        "code": raw.get("code") or 0,
        "data": _decode_data(raw.get("data")),
        "message": raw.get("msg") or raw.get("message") or "",
    }
    # Optional upstream fields are only echoed when the upstream sent them
    for key in ("debug_url", "usage"):
        if key in raw:
            envelope[key] = raw[key]
    return envelope


def transform_response(raw: Any) -> Dict[str, Any]:
    """Build ``{success, code, data, message, debug_url?, usage?}``.

    Never raises: a body that cannot be transformed degrades to
    ``{success: False, message: "transform failed", original_response}``.
    """
    try:
        return _build_envelope(raw)
    except TransformError as exc:
        logger.error("Failed to transform upstream response", error=exc.message, details=exc.details)
    except Exception as exc:
        logger.error("Failed to transform upstream response", error=str(exc), exc_info=exc)

    return {
        "success": False,
        "message": TRANSFORM_FAILED_MESSAGE,
        "original_response": raw,
    }
