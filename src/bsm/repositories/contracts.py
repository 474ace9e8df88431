from __future__ import annotations

from typing import Optional, Protocol

from bsm.domain.models import InventoryPurchase, Sale


class StockRepository(Protocol):
    def list_inventory(self, product_type: Optional[str] = None, bottle_size: Optional[str] = None) -> list[InventoryPurchase]: ...
    def available_stock(self, product_type: str, bottle_size: Optional[str]) -> int: ...


class SalesRepository(StockRepository, Protocol):
    def list_sales(self, payment_status: Optional[str] = None) -> list[Sale]: ...
    def get_sale(self, sale_id: int) -> Optional[Sale]: ...
    def apply_payment(self, sale_id: int, amount: float) -> bool: ...
    def mark_sale_pending(self, sale_id: int) -> bool: ...
