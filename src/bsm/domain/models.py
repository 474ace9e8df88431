from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


WATER_BOTTLE = "waterbottle"
COLD_DRINK = "coldrink"
PRODUCT_TYPES = (WATER_BOTTLE, COLD_DRINK)

# Canonical order for every per-size listing.
BOTTLE_SIZES = ("200ml", "250ml", "500ml", "1l", "2l")

PAYMENT_STATUSES = ("paid", "pending", "lending")
PAYMENT_MODES = ("cash", "online")
EXPENSE_CATEGORIES = ("labour", "miscellaneous")

DELIVERY_TTL_MS = 48 * 60 * 60 * 1000


def sku_label(product_type: str, bottle_size: Optional[str]) -> str:
    if product_type == WATER_BOTTLE and bottle_size:
        return f"{product_type}/{bottle_size}"
    return str(product_type)


@dataclass(frozen=True)
class Sale:
    id: int
    product_type: str
    bottle_size: Optional[str]
    quantity: int
    price_per_unit: float
    total_amount: float
    amount_paid: float
    amount_pending: float
    payment_mode: str
    payment_status: str
    customer_name: Optional[str]
    notes: Optional[str]
    created_at: str

    @property
    def sku(self) -> str:
        return sku_label(self.product_type, self.bottle_size)


@dataclass(frozen=True)
class InventoryPurchase:
    id: int
    product_type: str
    bottle_size: Optional[str]
    quantity: int
    remaining: int
    amount_paid: float
    unit_cost: Optional[float]
    notes: Optional[str]
    created_at: str

    @property
    def sku(self) -> str:
        return sku_label(self.product_type, self.bottle_size)


@dataclass(frozen=True)
class Expense:
    id: int
    category: str
    amount: float
    reason: str
    description: Optional[str]
    created_at: str


@dataclass(frozen=True)
class DeliveryRecord:
    id: int
    image_url: str
    image_public_id: Optional[str]
    notes: Optional[str]
    created_at: str
    expire_at: int


@dataclass(frozen=True)
class User:
    id: int
    email: str
    active: int = 1


@dataclass(frozen=True)
class Session:
    user: User
    token: str
    expires_at: str
