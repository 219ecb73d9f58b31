"""Pure validation of setting values against declarative schemas."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from services.state.settings_authority.domain import ValidationResult, ValidationSchema

REQUIRED_MESSAGE = "This field is required"
PATTERN_MESSAGE = "Value does not match required pattern"

_TYPE_MESSAGES = {
    "string": "Value must be a string",
    "number": "Value must be a number",
    "boolean": "Value must be true or false",
    "array": "Value must be an array",
    "object": "Value must be an object",
}


def coerce_schema(
    schema: ValidationSchema | Mapping[str, Any] | None,
) -> ValidationSchema | None:
    """Return a typed schema, leniently parsing plain mappings."""
    if schema is None or isinstance(schema, ValidationSchema):
        return schema
    if isinstance(schema, Mapping):
        return ValidationSchema.model_validate(dict(schema))
    return ValidationSchema()


def validate_value(
    value: Any,
    schema: ValidationSchema | Mapping[str, Any] | None,
) -> ValidationResult:
    """Validate ``value`` against ``schema`` and collect all messages.

    A missing schema accepts anything. Object schemas with ``properties`` check
    each declared field one level deep; messages for those fields are prefixed
    with the field name.
    """
    resolved = coerce_schema(schema)
    if resolved is None:
        return ValidationResult(valid=True, errors=[])

    errors = _check(value, resolved)
    if errors or resolved.type != "object" or not isinstance(value, Mapping):
        return ValidationResult(valid=not errors, errors=errors)

    for name, field_schema in (resolved.properties or {}).items():
        if name not in value and not field_schema.required:
            continue
        errors.extend(
            f"{name}: {message}" for message in _check(value.get(name), field_schema)
        )

    return ValidationResult(valid=not errors, errors=errors)


def _check(value: Any, schema: ValidationSchema) -> list[str]:
    """Apply required, type, and type-specific rules for one value."""
    if _is_absent(value):
        return [REQUIRED_MESSAGE] if schema.required else []

    kind = schema.type
    if kind not in _TYPE_MESSAGES:
        return []
    if not _matches_type(value, kind):
        return [_TYPE_MESSAGES[kind]]

    errors: list[str] = []
    if kind == "string":
        if schema.pattern is not None and not _matches_pattern(schema.pattern, value):
            errors.append(PATTERN_MESSAGE)
        if schema.enum is not None and value not in schema.enum:
            allowed = ", ".join(_display(item) for item in schema.enum)
            errors.append(f"Value must be one of: {allowed}")
    elif kind == "number":
        if schema.minimum is not None and value < schema.minimum:
            errors.append(f"Value must be at least {_display(schema.minimum)}")
        if schema.maximum is not None and value > schema.maximum:
            errors.append(f"Value must be at most {_display(schema.maximum)}")
    return errors


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _matches_type(value: Any, kind: str) -> bool:
    if kind == "string":
        return isinstance(value, str)
    if kind == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return not (isinstance(value, float) and math.isnan(value))
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "array":
        return isinstance(value, (list, tuple))
    return isinstance(value, Mapping)


def _matches_pattern(pattern: str, value: str) -> bool:
    """Search ``value`` for ``pattern``; uncompilable patterns never fail."""
    try:
        compiled = re.compile(pattern)
    except re.error:
        return True
    return compiled.search(value) is not None


def _display(item: Any) -> str:
    """Render schema literals the way they appear in JSON."""
    if isinstance(item, bool):
        return "true" if item else "false"
    if item is None:
        return "null"
    if isinstance(item, float) and item.is_integer():
        return str(int(item))
    return str(item)
