from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from bsm.domain.errors import ValidationError
from bsm.domain.models import EXPENSE_CATEGORIES, Expense
from bsm.repositories.unit_of_work import RepositoryUnitOfWork
from bsm.services.validation import parse_amount

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpenseTotals:
    total: float
    labour: float
    miscellaneous: float


class ExpenseService:
    def __init__(self, repo, uow_factory: Callable[[], RepositoryUnitOfWork] | None = None):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_expense(self, category: str, amount: float, reason: str, description: Optional[str] = None) -> int:
        if category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(EXPENSE_CATEGORIES)}.")
        amount = round(parse_amount(amount, "Amount"), 2)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0.")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for the expense.")

        with self.uow_factory() as uow:
            expense_id = uow.add_expense(category, amount, reason, (description or "").strip() or None)
        log.info("expense_added expense_id=%s category=%s amount=%.2f", expense_id, category, amount)
        return expense_id

    def list_expenses(self, category: Optional[str] = None) -> list[Expense]:
        if category and category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(EXPENSE_CATEGORIES)}.")
        return self.repo.list_expenses(category)

    def expense_totals(self) -> ExpenseTotals:
        rows = self.repo.list_expenses()
        labour = sum(e.amount for e in rows if e.category == "labour")
        misc = sum(e.amount for e in rows if e.category == "miscellaneous")
        return ExpenseTotals(total=round(labour + misc, 2), labour=round(labour, 2), miscellaneous=round(misc, 2))
