"""
Convert audit metadata into values a JSON column accepts.
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


def to_json_safe(value: Any) -> Any:
    """
    Recursively convert a value to plain JSON types

    Enums become their value, dates ISO strings, Decimal day counts floats,
    pydantic models their dump. Anything unknown falls back to str().
    """
    # str-based enums are also str instances, so unwrap them first
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, BaseModel):
        return to_json_safe(value.model_dump())
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_safe(item) for item in value]
    return str(value)


def serialize_meta(meta: Any) -> Optional[Dict[str, Any]]:
    """Audit meta_json payload; a bare scalar is wrapped as {"value": ...}"""
    if meta is None:
        return None
    if isinstance(meta, dict):
        return to_json_safe(meta)
    return {"value": to_json_safe(meta)}
