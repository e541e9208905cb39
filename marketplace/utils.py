# marketplace/utils.py
from typing import Any, Dict, Optional
import math
from bson import ObjectId
from datetime import datetime, timezone
from enum import Enum

from .errors import InvalidInput


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y todos los ObjectIds a strings.
    Los enums se sustituyen por su valor.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, Enum):
            d[key] = value.value
        elif isinstance(value, dict):
            d[key] = to_id(value)
        elif isinstance(value, list):
            d[key] = [
                str(item) if isinstance(item, ObjectId)
                else to_id(item) if isinstance(item, dict)
                else item
                for item in value
            ]

    return d


def to_object_id(value: str, field_name: str = "id") -> ObjectId:
    """
    Convierte un string a ObjectId con validación.
    """
    if not value or not ObjectId.is_valid(value):
        raise InvalidInput(f"Invalid {field_name}: {value}")
    return ObjectId(value)


def require_id(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"Missing {field_name}")
    return str(value).strip()


def round_money(amount: float) -> float:
    return round(float(amount), 2)


def is_positive_amount(value: Any) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0
