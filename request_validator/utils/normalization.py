from typing import Any, List, Optional


def is_absent(value: Any) -> bool:
    """A value is absent when the key was missing or explicitly null."""
    return value is None

def is_blank(value: Any) -> bool:
    """Absent or the empty string. Zero, False and empty containers are not blank."""
    return value is None or (isinstance(value, str) and value == '')

def as_text(value: Any) -> str:
    """Render a JSON-compatible scalar the way it would appear in a query string."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return value
    return str(value)

def value_length(value: Any) -> Optional[int]:
    """
    Length used by the min/max/digits rules.
    Strings and containers use len(); numbers use the length of their text form.
    Returns None for values that have no meaningful length.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    if isinstance(value, (int, float)):
        return len(str(value))
    return None

def parse_int_param(raw: Optional[str]) -> Optional[int]:
    """Parse an integer rule parameter such as the 8 in 'min:8'."""
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None

def split_list_param(raw: Optional[str]) -> List[str]:
    """Split a comma-separated rule parameter, dropping blank entries."""
    if raw is None:
        return []
    return [item.strip() for item in raw.split(',') if item.strip()]
