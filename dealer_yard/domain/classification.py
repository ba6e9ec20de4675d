"""Read-time classification of yard units."""
from __future__ import annotations

import re
from enum import Enum

FALLBACK_MODEL_RANGE = "OTHER"

_STOCK_SUFFIX = re.compile(r"\bstock$")


class UnitType(str, Enum):
    STOCK = "Stock"
    CUSTOMER = "Customer"


def classify_customer(customer: str | None) -> UnitType:
    """Stock when the customer is blank or its last word is ``stock``."""
    text = (customer or "").strip().lower()
    if not text or _STOCK_SUFFIX.search(text):
        return UnitType.STOCK
    return UnitType.CUSTOMER


def model_range(model: str | None, chassis: str | None = None) -> str:
    model_value = (model or "").strip()
    if model_value:
        return model_value[:3].upper()
    chassis_value = (chassis or "").strip()
    if chassis_value:
        return chassis_value[:3].upper()
    return FALLBACK_MODEL_RANGE
