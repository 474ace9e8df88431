from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


def now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat(sep=" ")


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def create_sale(self, sale: dict) -> int: ...
    def add_stock(self, batch: dict) -> int: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for transactional write use-cases.

    The repository methods already encapsulate SQL transactions (sale insert and
    stock depletion commit together). This class stamps creation times and keeps
    services persistence-agnostic.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def create_sale(self, sale: dict) -> int:
        return int(self.repo.create_sale_with_depletion(created_at=now_iso(), **sale))

    def add_stock(self, batch: dict) -> int:
        return int(self.repo.add_stock_batch(created_at=now_iso(), **batch))

    def add_expense(self, category: str, amount: float, reason: str, description: Optional[str]) -> int:
        return int(self.repo.add_expense(now_iso(), category, amount, reason, description))
