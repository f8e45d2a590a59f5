"""
Workflow parameter decoding and merging.

Caller parameters come from two untyped sources (query string on GET, JSON
body on POST) and are merged over the defaults stored with the workflow.
Every value is validated into a ``ParameterValue`` when it crosses the HTTP
boundary, so the rest of the pipeline only ever handles JSON-representable
data.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from shared.errors import ValidationError
from shared.logging import get_logger

logger = get_logger("workflow_gateway.parameters")


class ValueKind(str, Enum):
    """JSON value kinds a parameter may carry."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"


@dataclass(frozen=True)
class ParameterValue:
    """A JSON value tagged with its kind."""

    kind: ValueKind
    value: Any

    @classmethod
    def of(cls, raw: Any) -> "ParameterValue":
        """Validate ``raw`` as JSON data and tag it.

        Raises ``ValidationError`` for anything JSON cannot represent
        (non-finite floats, non-string object keys, arbitrary objects).
        """
        return cls(_kind_of(raw), _validated(raw))

    def to_json(self) -> Any:
        return self.value


ParameterSet = Dict[str, ParameterValue]


def _kind_of(raw: Any) -> ValueKind:
    # bool is a subclass of int, check it first
    if raw is None:
        return ValueKind.NULL
    if isinstance(raw, bool):
        return ValueKind.BOOLEAN
    if isinstance(raw, (int, float)):
        return ValueKind.NUMBER
    if isinstance(raw, str):
        return ValueKind.STRING
    if isinstance(raw, Mapping):
        return ValueKind.OBJECT
    if isinstance(raw, (list, tuple)):
        return ValueKind.ARRAY
    raise ValidationError(
        "Unsupported parameter value",
        details={"type": type(raw).__name__}
    )


def _validated(raw: Any) -> Any:
    kind = _kind_of(raw)
    if kind is ValueKind.NUMBER and isinstance(raw, float) and not math.isfinite(raw):
        raise ValidationError("Parameter numbers must be finite")
    if kind is ValueKind.OBJECT:
        result = {}
        for key, item in raw.items():
            if not isinstance(key, str):
                raise ValidationError("Parameter object keys must be strings")
            result[key] = _validated(item)
        return result
    if kind is ValueKind.ARRAY:
        return [_validated(item) for item in raw]
    return raw


def reject_json_constant(name: str) -> Any:
    """``parse_constant`` hook refusing NaN and +/-Infinity, which JSON cannot carry."""
    raise ValueError(f"Invalid JSON constant: {name}")


def decode_mapping(raw: Mapping[str, Any]) -> ParameterSet:
    """Tag every value of an already-decoded JSON object."""
    return {str(key): ParameterValue.of(value) for key, value in raw.items()}


def decode_query_parameters(items: Iterable[Tuple[str, str]]) -> ParameterSet:
    """Decode query string pairs.

    Values stay strings; a key repeated in the query string becomes an array
    of strings in the order given.
    """
    collected: Dict[str, Any] = {}
    for key, value in items:
        if key in collected:
            existing = collected[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                collected[key] = [existing, value]
        else:
            collected[key] = value
    return decode_mapping(collected)


def decode_body_parameters(body: bytes) -> ParameterSet:
    """Decode a JSON request body into parameters.

    An empty body means no parameters. Anything other than a JSON object is
    rejected.
    """
    if not body or not body.strip():
        return {}

    try:
        payload = json.loads(body, parse_constant=reject_json_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON", details={"error": str(exc)}) from exc

    if not isinstance(payload, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            details={"type": type(payload).__name__}
        )
    return decode_mapping(payload)


def parse_default_parameters(text: Optional[str], workflow_id: Optional[str] = None) -> ParameterSet:
    """Parse the stored default parameters of a workflow.

    Never raises: unparsable or non-object defaults are logged and treated as
    an empty set so the invocation can still proceed.
    """
    if not text:
        return {}

    try:
        payload = json.loads(text, parse_constant=reject_json_constant)
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return decode_mapping(payload)
    except (ValueError, ValidationError) as exc:
        logger.warning(
            "Failed to parse default parameters, using empty defaults",
            workflow_id=workflow_id,
            error=str(exc)
        )
        return {}


def merge_parameters(defaults: ParameterSet, caller: ParameterSet) -> ParameterSet:
    """Shallow merge: caller keys win, default-only keys are kept."""
    merged = dict(defaults)
    merged.update(caller)
    return merged


def to_plain(parameters: ParameterSet) -> Dict[str, Any]:
    """Convert tagged parameters back to plain JSON data."""
    return {key: value.to_json() for key, value in parameters.items()}
