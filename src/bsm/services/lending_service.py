from __future__ import annotations

import logging
from dataclasses import dataclass, field

from bsm.domain.errors import NotFoundError, ValidationError
from bsm.domain.models import Sale
from bsm.repositories.contracts import SalesRepository
from bsm.services.validation import parse_amount

log = logging.getLogger("bsm.sales")


@dataclass
class CustomerSummary:
    name: str
    total_sales: int = 0
    total_amount: float = 0.0
    total_paid: float = 0.0
    total_pending: float = 0.0
    sales: list[Sale] = field(default_factory=list)


class LendingService:
    """Settles outstanding balances and keeps the per-customer ledger."""

    def __init__(self, repo: SalesRepository):
        self.repo = repo

    def _get(self, sale_id: int) -> Sale:
        sale = self.repo.get_sale(int(sale_id))
        if not sale:
            raise NotFoundError("Sale not found.")
        return sale

    def record_payment(self, sale_id: int, amount: float) -> Sale:
        sale = self._get(sale_id)
        amount = round(parse_amount(amount, "Payment amount"), 2)

        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0.")
        if amount > sale.amount_pending:
            raise ValidationError(f"Payment exceeds the pending balance of {sale.amount_pending:.2f}.")
        if sale.payment_status not in ("pending", "lending"):
            raise ValidationError("Only pending or lending sales accept payments.")

        # The update re-validates the balance, so a concurrent payment cannot overdraw it.
        if not self.repo.apply_payment(sale.id, amount):
            raise ValidationError("Payment no longer fits the pending balance.")

        updated = self._get(sale.id)
        log.info(
            "payment_recorded sale_id=%s amount=%.2f pending=%.2f status=%s",
            sale.id, amount, updated.amount_pending, updated.payment_status,
        )
        return updated

    def mark_as_pending(self, sale_id: int) -> Sale:
        sale = self._get(sale_id)
        if sale.payment_status != "lending":
            raise ValidationError("Only lending sales can be moved to pending.")
        if not self.repo.mark_sale_pending(sale.id):
            raise ValidationError("Only lending sales can be moved to pending.")
        log.info("lending_marked_pending sale_id=%s", sale.id)
        return self._get(sale.id)

    def list_lending(self) -> list[Sale]:
        return self.repo.list_sales(payment_status="lending")

    def outstanding_lending(self) -> float:
        return round(sum(s.amount_pending for s in self.list_lending()), 2)

    def customer_summaries(self) -> list[CustomerSummary]:
        by_name: dict[str, CustomerSummary] = {}
        for sale in self.repo.list_sales():
            if not sale.customer_name:
                continue
            summary = by_name.setdefault(sale.customer_name, CustomerSummary(name=sale.customer_name))
            summary.total_sales += 1
            summary.total_amount += sale.total_amount
            summary.total_paid += sale.amount_paid
            summary.total_pending += sale.amount_pending
            summary.sales.append(sale)

        for summary in by_name.values():
            summary.total_amount = round(summary.total_amount, 2)
            summary.total_paid = round(summary.total_paid, 2)
            summary.total_pending = round(summary.total_pending, 2)
        return sorted(by_name.values(), key=lambda c: (-c.total_amount, c.name))
