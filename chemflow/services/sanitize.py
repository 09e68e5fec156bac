"""Redaction of sensitive fields from audit snapshots."""
from typing import Any, Mapping

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = ("password", "token", "secret", "key")


def sanitize_snapshot(value: Any, nested: bool = False) -> Any:
    """
    Return a copy of value with sensitive keys replaced by REDACTED.

    Only top-level keys are inspected unless nested is set, in which case
    mappings inside mappings and lists are redacted too. Key matching is
    case-sensitive. Non-mapping values are returned unchanged, and
    sanitizing an already sanitized value is a no-op.
    """
    if isinstance(value, Mapping):
        sanitized = {}
        for k, v in value.items():
            if k in SENSITIVE_FIELDS:
                sanitized[k] = REDACTED
            elif nested:
                sanitized[k] = sanitize_snapshot(v, nested=True)
            else:
                sanitized[k] = v
        return sanitized
    if nested and isinstance(value, list):
        return [sanitize_snapshot(item, nested=True) for item in value]
    return value
