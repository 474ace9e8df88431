from .models import Sale, InventoryPurchase, Expense, DeliveryRecord, User, Session
from .errors import ValidationError, NotFoundError, InsufficientStockError, AuthorizationError, ImageHostError

__all__ = [
    "Sale",
    "InventoryPurchase",
    "Expense",
    "DeliveryRecord",
    "User",
    "Session",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "AuthorizationError",
    "ImageHostError",
]
