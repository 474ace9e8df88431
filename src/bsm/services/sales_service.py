from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import logging
from bsm.domain.errors import NotFoundError, ValidationError
from bsm.domain.models import PAYMENT_MODES, PAYMENT_STATUSES, Sale, sku_label
from bsm.repositories.contracts import SalesRepository
from bsm.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from bsm.services.inventory_service import validate_sku
from bsm.services.validation import parse_amount, parse_quantity

log = logging.getLogger("bsm.sales")


@dataclass(frozen=True)
class SalesTotals:
    total_sales: float
    total_paid: float
    total_pending: float
    total_quantity: int


class SalesService:
    def __init__(
        self,
        repo: SalesRepository,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def create_sale(
        self,
        product_type: str,
        bottle_size: Optional[str],
        quantity: int,
        price_per_unit: float,
        amount_paid: float,
        payment_status: str = "pending",
        payment_mode: str = "cash",
        customer_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        size = validate_sku(product_type, bottle_size)
        quantity = parse_quantity(quantity)
        price = parse_amount(price_per_unit, "Price per unit")
        paid = round(parse_amount(amount_paid, "Amount paid"), 2)

        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0.")
        if price < 0:
            raise ValidationError("Price per unit cannot be negative.")
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"Payment status must be one of: {', '.join(PAYMENT_STATUSES)}.")
        if payment_mode not in PAYMENT_MODES:
            raise ValidationError(f"Payment mode must be one of: {', '.join(PAYMENT_MODES)}.")

        total = round(quantity * price, 2)
        if paid < 0:
            raise ValidationError("Amount paid cannot be negative.")
        if paid > total:
            raise ValidationError("Amount paid cannot be greater than total amount.")

        pending = round(total - paid, 2)
        customer = (customer_name or "").strip() or None
        if pending <= 0:
            status = "paid"
        elif payment_status == "paid":
            raise ValidationError("A sale with an outstanding balance cannot be marked as paid.")
        else:
            status = payment_status
        if status == "lending" and not customer:
            raise ValidationError("Lending sales need a customer name.")

        # Stock sufficiency is re-checked inside the same transaction that depletes it.
        with self.uow_factory() as uow:
            sale_id = uow.create_sale(
                {
                    "product_type": product_type,
                    "bottle_size": size,
                    "quantity": quantity,
                    "price_per_unit": price,
                    "total_amount": total,
                    "amount_paid": paid,
                    "amount_pending": pending,
                    "payment_mode": payment_mode,
                    "payment_status": status,
                    "customer_name": customer,
                    "notes": (notes or "").strip() or None,
                }
            )
        log.info(
            "sale_created sale_id=%s sku=%s qty=%s total=%.2f status=%s",
            sale_id, sku_label(product_type, size), quantity, total, status,
        )
        return sale_id

    def list_sales(self) -> list[Sale]:
        return self.repo.list_sales()

    def get_sale(self, sale_id: int) -> Sale:
        sale = self.repo.get_sale(int(sale_id))
        if not sale:
            raise NotFoundError("Sale not found.")
        return sale

    @staticmethod
    def sales_totals(rows: list[Sale]) -> SalesTotals:
        return SalesTotals(
            total_sales=round(sum(s.total_amount for s in rows), 2),
            total_paid=round(sum(s.amount_paid for s in rows), 2),
            total_pending=round(sum(s.amount_pending for s in rows), 2),
            total_quantity=sum(int(s.quantity) for s in rows),
        )
