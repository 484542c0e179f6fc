import re
from typing import Any

# Simple, pragmatic patterns
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

def clean_str(val: Any, max_len: int | None = None) -> str | None:
    """
    Trim surrounding whitespace. Returns None if empty after cleaning or not a string.
    """
    if not isinstance(val, str):
        return None
    s = val.strip()
    if not s:
        return None
    return s[:max_len] if max_len else s

def check_length(errors: list, field: str, val: str | None, *, min_len: int = 0, max_len: int | None = None, required: bool = True):
    if val is None:
        if required:
            errors.append(f"{field}: required")
        return
    if len(val) < min_len:
        errors.append(f"{field}: must be at least {min_len} characters")
    elif max_len is not None and len(val) > max_len:
        errors.append(f"{field}: must be at most {max_len} characters")

def is_valid_email(val: str | None) -> bool:
    if not val:
        return False
    return bool(_EMAIL_RE.match(val))

def is_valid_hex_color(val: str | None) -> bool:
    if not val:
        return False
    return bool(_HEX_COLOR_RE.match(val))

def parse_id(val: Any) -> int | None:
    """
    Accept positive ints or digit strings (JSON clients send both). Returns None otherwise.
    """
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val if val > 0 else None
    if isinstance(val, str) and val.strip().isdigit():
        v = int(val.strip())
        return v if v > 0 else None
    return None
