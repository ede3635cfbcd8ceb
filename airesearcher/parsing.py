"""Shared parsing helpers for configuration value normalization."""

from __future__ import annotations


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_int_value(value: object, field_name: str) -> int:
    """Parse an integer config value, accepting numeric strings.

    Raises:
        ValueError: If the value is a boolean or not an integral number.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be an integer.")
    if isinstance(value, int):
        return value
    normalized = normalize_optional_string(value)
    if normalized is None:
        raise ValueError(f"`{field_name}` must be an integer.")
    try:
        return int(normalized)
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be an integer.") from exc


def parse_float_value(value: object, field_name: str) -> float:
    """Parse a float config value, accepting integers and numeric strings."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a number.")
    if isinstance(value, int | float):
        return float(value)
    normalized = normalize_optional_string(value)
    if normalized is None:
        raise ValueError(f"`{field_name}` must be a number.")
    try:
        return float(normalized)
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a number.") from exc
