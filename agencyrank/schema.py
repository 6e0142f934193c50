from typing import Any, Dict, List, Mapping

REQUIRED_STR_FIELDS = ["slug", "name"]
OPTIONAL_STR_FIELDS = [
    "display_name",
    "short_name",
]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_agency(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for one listing entry.
    Empty list means valid.
    """
    if not isinstance(data, dict):
        return [f"Agency entry must be an object, got {type(data).__name__}"]

    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    # Optional strings: null is allowed, anything else must be a string
    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    return errors


def coerce_count(value: Any) -> int:
    """
    Coerce a count from a payload to a non-negative int.

    Accepts ints, integral floats and numeric strings ("42", "42.0").
    Raises ValueError for anything else, including booleans.
    """
    if isinstance(value, bool):
        raise ValueError(f"Count must be numeric, got {value!r}")
    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Count must be a whole number, got {value!r}")
        count = int(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            count = int(text)
        except ValueError:
            as_float = float(text)  # ValueError propagates for junk
            if not as_float.is_integer():
                raise ValueError(f"Count must be a whole number, got {value!r}")
            count = int(as_float)
    else:
        raise ValueError(f"Count must be numeric, got {type(value).__name__}")

    if count < 0:
        raise ValueError(f"Count must be non-negative, got {count}")
    return count


def parse_word_count(payload: Any) -> int:
    """
    Extract the scalar count from a search count response.

    Two shapes are accepted:
        {"count": 123}
        {"meta": {"total_count": 123 | "123"}}
    """
    if not isinstance(payload, Mapping):
        raise ValueError("Count response must be an object")

    count = payload.get("count")
    if isinstance(count, (int, float)) and not isinstance(count, bool):
        return coerce_count(count)

    meta = payload.get("meta")
    if isinstance(meta, Mapping) and meta.get("total_count") is not None:
        return coerce_count(meta["total_count"])

    raise ValueError("Count response has neither 'count' nor 'meta.total_count'")


def parse_daily_counts(payload: Any) -> Dict[str, int]:
    """Extract the per-date count mapping from a daily counts response."""
    if not isinstance(payload, Mapping):
        raise ValueError("Daily counts response must be an object")
    dates = payload.get("dates")
    if not isinstance(dates, Mapping):
        raise ValueError("Daily counts response has no 'dates' mapping")
    return {str(day): coerce_count(value) for day, value in dates.items()}
