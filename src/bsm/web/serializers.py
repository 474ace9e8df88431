from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime


def to_json(obj):
    """Plain JSON-ready structure: dataclasses become dicts, dates become ISO strings."""
    if is_dataclass(obj) and not isinstance(obj, type):
        obj = asdict(obj)
    if isinstance(obj, dict):
        return {k: to_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json(v) for v in obj]
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


def sku_payload(level) -> dict:
    return {
        "sku": level.sku,
        "product_type": level.product_type,
        "bottle_size": level.bottle_size,
        "on_hand": level.on_hand,
    }
