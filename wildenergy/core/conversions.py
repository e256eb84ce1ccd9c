"""Conversion helpers for common type coercion."""

from typing import Optional


def coerce_int(value: object) -> Optional[int]:
    """Return an int for valid string/int inputs, otherwise None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except (TypeError, ValueError):
            return None
    return None


def normalize_qr_code(value: object) -> Optional[str]:
    """Return a stripped QR token, or None when the input is empty."""
    if not isinstance(value, str):
        return None
    token = value.strip()
    return token or None
