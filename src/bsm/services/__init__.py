from .inventory_service import InventoryService
from .sales_service import SalesService
from .lending_service import LendingService
from .expense_service import ExpenseService
from .delivery_service import DeliveryService
from .image_host import ImageHostClient
from .reporting_service import ReportingService
from .auth_service import AuthService

__all__ = [
    "InventoryService",
    "SalesService",
    "LendingService",
    "ExpenseService",
    "DeliveryService",
    "ImageHostClient",
    "ReportingService",
    "AuthService",
]
