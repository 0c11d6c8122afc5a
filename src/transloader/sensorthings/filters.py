"""
OData ``$filter`` expressions for natural-key lookups.
"""

from datetime import datetime
from typing import Any, Mapping

from ..models import to_iso8601
from .kinds import EntityKind


def sanitize_odata_string(value: str) -> str:
    """Quote a string literal, doubling embedded single quotes as OData requires.

    Examples:
        >>> sanitize_odata_string("O'Brien Creek")
        "'O''Brien Creek'"
    """
    return "'" + value.replace("'", "''") + "'"


def format_literal(value: Any, quoted: bool = True) -> str:
    """Render a Python value as an OData literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        return to_iso8601(value)
    text = str(value)
    if not quoted:
        if "'" in text or " " in text:
            raise ValueError(f"Unquoted filter literal contains illegal characters: {text!r}")
        return text
    return sanitize_odata_string(text)


def eq(field: str, value: Any, quoted: bool = True) -> str:
    return f"{field} eq {format_literal(value, quoted=quoted)}"


def build_filter(kind: EntityKind, attributes: Mapping[str, Any]) -> str:
    """Build the natural-key filter of ``kind`` from local attributes.

    Examples:
        >>> build_filter(THING, {"name": "Station 1", "description": "Weather"})
        "name eq 'Station 1' and description eq 'Weather'"
    """
    clauses = [
        eq(field, attributes.get(field), quoted=field not in kind.unquoted_key_fields)
        for field in kind.key_fields
    ]
    return " and ".join(clauses)
