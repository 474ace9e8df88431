from __future__ import annotations

import math

from bsm.domain.errors import ValidationError


def parse_amount(value, label: str) -> float:
    """Finite float from form/JSON input; rejects text, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number.")
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a number.") from e
    if not math.isfinite(amount):
        raise ValidationError(f"{label} must be a finite number.")
    return amount


def parse_quantity(value) -> int:
    # 3, "3" and 3.0 are accepted; 2.9 is not silently truncated
    qty = parse_amount(value, "Quantity")
    if not qty.is_integer():
        raise ValidationError("Quantity must be a whole number of units.")
    return int(qty)
