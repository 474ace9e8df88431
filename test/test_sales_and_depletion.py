import threading
from pathlib import Path

import pytest
from conftest import make_container

from bsm.domain.errors import InsufficientStockError, NotFoundError, ValidationError


def test_sale_depletes_oldest_batch_first(tmp_path: Path):
    c = make_container(tmp_path)
    first = c.inventory.add_stock("waterbottle", "1l", 5, 50.0)
    second = c.inventory.add_stock("waterbottle", "1l", 10, 120.0)

    c.sales.create_sale("waterbottle", "1l", 7, 20.0, 140.0, payment_status="paid")

    assert c.repo.get_stock_batch(first).remaining == 0
    assert c.repo.get_stock_batch(second).remaining == 8
    assert c.inventory.available_stock("waterbottle", "1l") == 8
    # purchased quantity is kept for costing
    assert c.repo.get_stock_batch(first).quantity == 5


def test_insufficient_stock_rejects_and_leaves_state_untouched(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "500ml", 3, 30.0)

    with pytest.raises(InsufficientStockError, match="Available: 3 units") as exc:
        c.sales.create_sale("waterbottle", "500ml", 4, 12.0, 48.0)
    assert exc.value.available == 3

    assert c.sales.list_sales() == []
    assert c.inventory.available_stock("waterbottle", "500ml") == 3


def test_stock_is_tracked_per_bottle_size(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "1l", 10, 100.0)

    with pytest.raises(InsufficientStockError):
        c.sales.create_sale("waterbottle", "2l", 1, 30.0, 30.0)


def test_cold_drink_sale_draws_from_any_cold_drink_batch(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("coldrink", None, 6, 60.0)

    c.sales.create_sale("coldrink", None, 6, 15.0, 90.0)

    assert c.inventory.available_stock("coldrink") == 0


def test_concurrent_sales_cannot_oversell(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "1l", 5, 50.0)

    results = []
    barrier = threading.Barrier(2)

    def sell():
        barrier.wait()
        try:
            c.sales.create_sale("waterbottle", "1l", 4, 20.0, 80.0)
            results.append("ok")
        except InsufficientStockError:
            results.append("rejected")

    threads = [threading.Thread(target=sell) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["ok", "rejected"]
    assert c.inventory.available_stock("waterbottle", "1l") == 1


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"product_type": "juice", "bottle_size": None}, "Unknown product type"),
        ({"bottle_size": "3l"}, "Bottle size must be one of"),
        ({"product_type": "coldrink", "bottle_size": "1l"}, "only applies to water"),
        ({"quantity": 0}, "Quantity must be greater than 0"),
        ({"quantity": "abc"}, "Quantity must be a number"),
        ({"quantity": 2.9}, "whole number"),
        ({"quantity": "inf"}, "finite"),
        ({"price_per_unit": "nan"}, "finite"),
        ({"price_per_unit": float("inf")}, "finite"),
        ({"amount_paid": "nan"}, "finite"),
        ({"amount_paid": float("-inf")}, "finite"),
        ({"price_per_unit": -1}, "cannot be negative"),
        ({"amount_paid": 500}, "cannot be greater than total"),
        ({"amount_paid": -5}, "Amount paid cannot be negative"),
        ({"payment_mode": "card"}, "Payment mode"),
        ({"payment_status": "unknown"}, "Payment status"),
        ({"payment_status": "lending", "amount_paid": 0}, "customer name"),
        ({"payment_status": "paid", "amount_paid": 10}, "outstanding balance"),
    ],
)
def test_sale_validation(tmp_path: Path, kwargs, message):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "1l", 10, 100.0)
    args = {
        "product_type": "waterbottle",
        "bottle_size": "1l",
        "quantity": 2,
        "price_per_unit": 20.0,
        "amount_paid": 40.0,
    }
    args.update(kwargs)

    with pytest.raises(ValidationError, match=message):
        c.sales.create_sale(**args)
    assert c.inventory.available_stock("waterbottle", "1l") == 10


def test_fully_paid_sale_is_always_marked_paid(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "1l", 10, 100.0)

    sid = c.sales.create_sale("waterbottle", "1l", 2, 20.0, 40.0, payment_status="lending", customer_name="Ravi")
    sale = c.sales.get_sale(sid)

    assert sale.payment_status == "paid"
    assert sale.amount_pending == 0


def test_totals_are_conserved_on_create(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "250ml", 100, 300.0)

    sid = c.sales.create_sale("waterbottle", "250ml", 7, 4.35, 10.0, payment_status="pending")
    sale = c.sales.get_sale(sid)

    assert sale.total_amount == 30.45
    assert sale.amount_paid + sale.amount_pending == pytest.approx(sale.total_amount)


def test_get_missing_sale_raises(tmp_path: Path):
    c = make_container(tmp_path)
    with pytest.raises(NotFoundError):
        c.sales.get_sale(999)


def test_sales_totals_summarise_rows(tmp_path: Path):
    c = make_container(tmp_path)
    c.inventory.add_stock("waterbottle", "1l", 10, 100.0)
    c.sales.create_sale("waterbottle", "1l", 2, 20.0, 40.0)
    c.sales.create_sale("waterbottle", "1l", 3, 20.0, 20.0, payment_status="lending", customer_name="Asha")

    totals = c.sales.sales_totals(c.sales.list_sales())

    assert totals.total_sales == 100.0
    assert totals.total_paid == 60.0
    assert totals.total_pending == 40.0
    assert totals.total_quantity == 5


def test_depletion_exhausts_first_batch_then_rejects_oversell(tmp_path: Path):
    c = make_container(tmp_path)
    first = c.inventory.add_stock("waterbottle", "200ml", 3, 15.0)
    second = c.inventory.add_stock("waterbottle", "200ml", 5, 25.0)

    c.sales.create_sale("waterbottle", "200ml", 6, 8.0, 48.0)
    assert c.repo.get_stock_batch(first).remaining == 0
    assert c.repo.get_stock_batch(second).remaining == 2

    with pytest.raises(InsufficientStockError):
        c.repo.create_sale_with_depletion(
            created_at="2024-03-01 10:00:00", product_type="waterbottle", bottle_size="200ml",
            quantity=3, price_per_unit=8.0, total_amount=24.0, amount_paid=24.0, amount_pending=0.0,
            payment_mode="cash", payment_status="paid", customer_name=None, notes=None,
        )
    assert c.repo.get_stock_batch(second).remaining == 2
    assert len(c.sales.list_sales()) == 1
