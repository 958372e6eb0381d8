"""
Coercion Utilities
Small, total conversions used to read loosely-shaped validator payloads.
None of these raise on unexpected input.
"""
import json
import math
import re
from typing import Any, Callable, List, Optional, Sequence, Union

# Keys tried, in order, when a list item is an object instead of a string
STRING_ITEM_KEYS = ("text", "description", "summary", "details", "reason", "message")

_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
_SPLIT_PATTERN = re.compile(r"\n|;")

Accessor = Union[str, Callable[[dict], Any]]


def round_half_up(value: float) -> Optional[int]:
    """
    Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2).

    Returns None for values with no integer form: infinities, NaN, and ints
    too large to convert to float.
    """
    try:
        return int(math.floor(value + 0.5))
    except (OverflowError, ValueError):
        return None


def extract_numeric_score(value: Any) -> Optional[int]:
    """
    Pull an integer score out of a number or a string such as "Score: 87.6%".

    Returns None when nothing numeric is found, or when the number has no
    finite integer value. The result is not clamped.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return round_half_up(value)
    if isinstance(value, str):
        match = _NUMBER_PATTERN.search(value)
        if match:
            return round_half_up(float(match.group(0)))
    return None


def to_array(value: Any) -> List[Any]:
    """
    Coerce anything into a list.

    - falsy -> []
    - list/tuple -> list
    - string -> decoded JSON list, else split on newline or semicolon
    - dict -> its values
    - any other scalar -> [value]
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return parsed
        return [item.strip() for item in _SPLIT_PATTERN.split(value) if item.strip()]
    if isinstance(value, dict):
        return list(value.values())
    return [value]


def _item_to_string(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        text = first_non_empty(item, STRING_ITEM_KEYS)
        return str(text).strip() if text is not None else ""
    if isinstance(item, (list, tuple)):
        return ""
    return str(item).strip()


def to_string_array(value: Any) -> List[str]:
    """to_array, then reduce every item to a trimmed string and drop empties."""
    return [text for text in (_item_to_string(item) for item in to_array(value)) if text]


def first_non_empty(obj: Any, accessors: Sequence[Accessor], skip_blank: bool = True) -> Any:
    """
    Evaluate accessors in order and return the first usable value.

    An accessor is either a dict key or a callable taking the object.
    None is never usable; blank strings are skipped unless skip_blank is False.
    """
    if not isinstance(obj, dict):
        return None
    for accessor in accessors:
        value = accessor(obj) if callable(accessor) else obj.get(accessor)
        if value is None:
            continue
        if skip_blank and isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def first_text(obj: Any, keys: Sequence[str]) -> Optional[str]:
    """First non-blank string value among keys, ignoring non-string values."""
    return first_non_empty(obj, [lambda o, k=key: o.get(k) if isinstance(o.get(k), str) else None for key in keys])


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}
