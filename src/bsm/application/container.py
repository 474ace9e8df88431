from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bsm.config import Settings
from bsm.repositories.sqlite_repo import SqliteRepository
from bsm.services.auth_service import AuthService, LoginPolicy
from bsm.services.delivery_service import DeliveryService
from bsm.services.expense_service import ExpenseService
from bsm.services.image_host import ImageHostClient
from bsm.services.inventory_service import InventoryService
from bsm.services.lending_service import LendingService
from bsm.services.reporting_service import ReportingService
from bsm.services.sales_service import SalesService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    inventory: InventoryService
    sales: SalesService
    lending: LendingService
    expenses: ExpenseService
    deliveries: DeliveryService
    reporting: ReportingService
    auth: AuthService


def build_container(db_path: Path | str, settings: Settings | None = None, image_host=None) -> AppContainer:
    settings = settings or Settings.from_env()
    repo = SqliteRepository(db_path)
    repo.init_db()

    images = image_host or ImageHostClient(
        cloud_name=settings.cloudinary_cloud_name,
        upload_preset=settings.cloudinary_upload_preset,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )

    inventory = InventoryService(repo)
    sales = SalesService(repo)
    lending = LendingService(repo)
    expenses = ExpenseService(repo)
    deliveries = DeliveryService(repo, images)
    reporting = ReportingService(repo, inventory, lending)
    auth = AuthService(repo, LoginPolicy(session_ttl_seconds=settings.session_ttl_seconds))

    return AppContainer(
        repo=repo,
        inventory=inventory,
        sales=sales,
        lending=lending,
        expenses=expenses,
        deliveries=deliveries,
        reporting=reporting,
        auth=auth,
    )
