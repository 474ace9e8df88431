from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from bsm.domain.errors import ValidationError
from bsm.domain.models import (
    BOTTLE_SIZES,
    COLD_DRINK,
    PRODUCT_TYPES,
    WATER_BOTTLE,
    InventoryPurchase,
    sku_label,
)
from bsm.repositories.contracts import StockRepository
from bsm.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from bsm.services.validation import parse_amount, parse_quantity

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLevel:
    product_type: str
    bottle_size: Optional[str]
    on_hand: int

    @property
    def sku(self) -> str:
        return sku_label(self.product_type, self.bottle_size)


def validate_sku(product_type: str, bottle_size: Optional[str]) -> Optional[str]:
    """Return the bottle size to store for this product type, or raise."""
    if product_type not in PRODUCT_TYPES:
        raise ValidationError(f"Unknown product type '{product_type}'.")
    if product_type == WATER_BOTTLE:
        if bottle_size not in BOTTLE_SIZES:
            raise ValidationError(f"Bottle size must be one of: {', '.join(BOTTLE_SIZES)}.")
        return bottle_size
    if bottle_size:
        raise ValidationError("Bottle size only applies to water bottles.")
    return None


class InventoryService:
    def __init__(self, repo: StockRepository, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_stock(
        self,
        product_type: str,
        bottle_size: Optional[str],
        quantity: int,
        amount_paid: float,
        notes: Optional[str] = None,
    ) -> int:
        size = validate_sku(product_type, bottle_size)
        quantity = parse_quantity(quantity)
        amount_paid = parse_amount(amount_paid, "Amount paid")
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0.")
        if amount_paid < 0:
            raise ValidationError("Amount paid cannot be negative.")

        unit_cost = round(amount_paid / quantity, 2)
        with self.uow_factory() as uow:
            batch_id = uow.add_stock(
                {
                    "product_type": product_type,
                    "bottle_size": size,
                    "quantity": quantity,
                    "amount_paid": round(amount_paid, 2),
                    "unit_cost": unit_cost,
                    "notes": (notes or "").strip() or None,
                }
            )
        log.info(
            "stock_added batch_id=%s sku=%s qty=%s amount=%.2f unit_cost=%.2f",
            batch_id, sku_label(product_type, size), quantity, amount_paid, unit_cost,
        )
        return batch_id

    def available_stock(self, product_type: str, bottle_size: Optional[str] = None) -> int:
        size = validate_sku(product_type, bottle_size)
        return int(self.repo.available_stock(product_type, size))

    def stock_levels(self) -> list[StockLevel]:
        on_hand: dict[tuple[str, Optional[str]], int] = {(COLD_DRINK, None): 0}
        for size in BOTTLE_SIZES:
            on_hand[(WATER_BOTTLE, size)] = 0
        for batch in self.repo.list_inventory():
            size = batch.bottle_size if batch.product_type == WATER_BOTTLE else None
            key = (batch.product_type, size)
            on_hand[key] = on_hand.get(key, 0) + int(batch.remaining)
        return [StockLevel(product_type=k[0], bottle_size=k[1], on_hand=v) for k, v in on_hand.items()]

    def stock_history(self, product_type: Optional[str] = None, bottle_size: Optional[str] = None) -> list[InventoryPurchase]:
        if product_type and product_type not in PRODUCT_TYPES:
            raise ValidationError(f"Unknown product type '{product_type}'.")
        return self.repo.list_inventory(product_type, bottle_size)

    @staticmethod
    def history_totals(rows: list[InventoryPurchase]) -> tuple[int, float]:
        total_qty = sum(int(r.quantity) for r in rows)
        total_amount = round(sum(float(r.amount_paid) for r in rows), 2)
        return total_qty, total_amount
