from datetime import date

import pytest

from bsm.domain import profit
from bsm.domain.models import COLD_DRINK, WATER_BOTTLE, InventoryPurchase, Sale


def batch(id, qty, paid, created_at, size="1l", product=WATER_BOTTLE, unit_cost="auto", remaining=None):
    if unit_cost == "auto":
        unit_cost = paid / qty if qty else None
    return InventoryPurchase(
        id=id,
        product_type=product,
        bottle_size=size if product == WATER_BOTTLE else None,
        quantity=qty,
        remaining=qty if remaining is None else remaining,
        amount_paid=paid,
        unit_cost=unit_cost,
        notes=None,
        created_at=created_at,
    )


def sale(id, qty, price, created_at, size="1l", product=WATER_BOTTLE):
    total = qty * price
    return Sale(
        id=id,
        product_type=product,
        bottle_size=size if product == WATER_BOTTLE else None,
        quantity=qty,
        price_per_unit=price,
        total_amount=total,
        amount_paid=total,
        amount_pending=0.0,
        payment_mode="cash",
        payment_status="paid",
        customer_name=None,
        notes=None,
        created_at=created_at,
    )


def test_weighted_average_over_batches_before_sale():
    purchases = [
        batch(1, 10, 100.0, "2024-03-01 08:00:00"),
        batch(2, 30, 150.0, "2024-03-02 08:00:00"),
    ]
    avg = profit.average_unit_cost(WATER_BOTTLE, "1l", "2024-03-03 09:00:00", purchases)
    assert avg == pytest.approx(250.0 / 40)


def test_later_purchases_do_not_change_earlier_sale_cost():
    early = [batch(1, 10, 100.0, "2024-03-01 08:00:00")]
    s = sale(1, 4, 20.0, "2024-03-01 12:00:00")
    before = profit.sale_cogs(s, early)

    later = early + [batch(2, 10, 500.0, "2024-03-05 08:00:00")]
    after = profit.sale_cogs(s, later)

    assert before == pytest.approx(40.0)
    assert after == before


def test_sale_before_any_stock_uses_all_time_average():
    purchases = [batch(1, 5, 50.0, "2024-03-10 08:00:00")]
    s = sale(1, 2, 15.0, "2024-03-01 12:00:00")
    assert profit.sale_cogs(s, purchases) == pytest.approx(20.0)


def test_unknown_sku_costs_zero_and_is_reported():
    purchases = [batch(1, 5, 50.0, "2024-03-01 08:00:00", size="500ml")]
    s = sale(1, 3, 10.0, "2024-03-02 12:00:00", size="2l")

    assert profit.sale_cogs(s, purchases) == 0.0
    assert profit.zero_cost_skus([s], purchases) == ["waterbottle/2l"]


def test_missing_unit_cost_falls_back_to_amount_paid():
    purchases = [
        batch(1, 10, 80.0, "2024-03-01 08:00:00", unit_cost=None),
        batch(2, 10, 120.0, "2024-03-01 09:00:00"),
    ]
    avg = profit.average_unit_cost(WATER_BOTTLE, "1l", "2024-03-02", purchases)
    assert avg == pytest.approx(10.0)


def test_weighted_average_uses_purchased_quantity_not_remaining():
    purchases = [batch(1, 10, 100.0, "2024-03-01 08:00:00", remaining=0)]
    avg = profit.average_unit_cost(WATER_BOTTLE, "1l", "2024-03-02", purchases)
    assert avg == pytest.approx(10.0)


def test_cold_drink_cost_ignores_bottle_size():
    purchases = [batch(1, 24, 240.0, "2024-03-01 08:00:00", product=COLD_DRINK)]
    s = sale(1, 6, 20.0, "2024-03-01 12:00:00", product=COLD_DRINK)
    assert profit.sale_cogs(s, purchases) == pytest.approx(60.0)
    assert profit.zero_cost_skus([s], purchases) == []


def test_daily_profit_totals_and_stock_spent():
    purchases = [
        batch(1, 10, 100.0, "2024-03-01 08:00:00"),
        batch(2, 20, 60.0, "2024-03-01 08:30:00", size="500ml"),
    ]
    sales = [
        sale(1, 2, 25.0, "2024-03-01 10:00:00"),
        sale(2, 5, 8.0, "2024-03-01 11:00:00", size="500ml"),
        sale(3, 1, 25.0, "2024-03-02 10:00:00"),
    ]

    d = profit.daily_profit(date(2024, 3, 1), sales, purchases)

    assert d.revenue == 90.0
    assert d.cost == 35.0
    assert d.profit == 55.0
    assert d.units_sold == 7
    assert d.sales_count == 2
    assert d.stock_spent == 160.0


def test_size_breakdown_follows_canonical_size_order():
    purchases = [
        batch(1, 10, 100.0, "2024-03-01 08:00:00", size="2l"),
        batch(2, 10, 30.0, "2024-03-01 08:00:00", size="200ml"),
        batch(3, 10, 60.0, "2024-03-01 08:00:00", size="500ml"),
    ]
    sales = [
        sale(1, 1, 20.0, "2024-03-01 10:00:00", size="2l"),
        sale(2, 2, 5.0, "2024-03-01 10:00:00", size="200ml"),
        sale(3, 1, 9.0, "2024-03-01 10:00:00", size="500ml"),
        sale(4, 3, 12.0, "2024-03-01 10:00:00", product=COLD_DRINK),
    ]

    rows = profit.size_breakdown(date(2024, 3, 1), sales, purchases)

    assert [r.size for r in rows] == ["200ml", "500ml", "2l"]
    assert rows[0].quantity == 2
    assert rows[0].average_unit_cost == 3.0
    assert rows[0].profit == 4.0


def test_monthly_rows_newest_first_and_include_purchase_only_months():
    purchases = [
        batch(1, 10, 100.0, "2024-01-15 08:00:00"),
        batch(2, 10, 100.0, "2024-03-01 08:00:00"),
    ]
    sales = [
        sale(1, 2, 20.0, "2024-02-10 10:00:00"),
        sale(2, 1, 20.0, "2024-03-05 10:00:00"),
    ]

    months = profit.monthly_profits(sales, purchases)

    assert [m.month for m in months] == ["2024-03", "2024-02", "2024-01"]
    assert months[1].revenue == 40.0
    assert months[1].cost == 20.0
    assert months[1].stock_spent == 0.0
    assert months[2].sales_count == 0
    assert months[2].stock_spent == 100.0


def test_monthly_profit_sums_to_total_profit():
    purchases = [
        batch(1, 12, 90.0, "2024-01-01 08:00:00"),
        batch(2, 7, 77.0, "2024-02-01 08:00:00"),
        batch(3, 24, 300.0, "2024-01-01 08:00:00", product=COLD_DRINK),
    ]
    sales = [
        sale(1, 3, 14.0, "2024-01-05 10:00:00"),
        sale(2, 4, 13.5, "2024-02-03 10:00:00"),
        sale(3, 5, 20.0, "2024-02-07 10:00:00", product=COLD_DRINK),
        sale(4, 2, 15.0, "2024-03-01 10:00:00"),
    ]

    months = profit.monthly_profits(sales, purchases)
    assert sum(m.profit for m in months) == pytest.approx(profit.total_profit(sales, purchases), abs=0.02)


def test_invalid_fields_are_treated_as_zero():
    bad = Sale(
        id=1, product_type=WATER_BOTTLE, bottle_size="1l", quantity="x", price_per_unit=None,
        total_amount=0, amount_paid=0, amount_pending=0, payment_mode="cash",
        payment_status="paid", customer_name=None, notes=None, created_at="not a date",
    )
    assert profit.sale_revenue(bad) == 0.0
    assert profit.sale_cogs(bad, [batch(1, 10, 100.0, "2024-03-01 08:00:00")]) == 0.0
    assert profit.to_datetime("not a date").year == 1970


def test_timestamps_accept_epoch_millis_and_aware_iso():
    assert profit.to_datetime(0).date() == profit.to_datetime("1970-01-01T00:00:00+00:00").date()
    assert profit.to_datetime(date(2024, 3, 1)).hour == 0


def test_weighted_average_example_rounds_to_display_value():
    purchases = [
        batch(1, 10, 20.0, "2024-03-01 08:00:00", size="500ml", unit_cost=2.0),
        batch(2, 5, 20.0, "2024-03-02 08:00:00", size="500ml", unit_cost=4.0),
    ]
    s = sale(1, 3, 10.0, "2024-03-03 10:00:00", size="500ml")

    assert round(profit.average_unit_cost(WATER_BOTTLE, "500ml", s.created_at, purchases), 4) == 2.6667
    assert round(profit.sale_cogs(s, purchases), 2) == 8.0


def test_daily_buckets_use_exact_calendar_dates():
    purchases = [batch(1, 10, 100.0, "2024-03-01 08:00:00")]
    late = sale(1, 1, 20.0, "2024-03-10T23:59:59")
    early = sale(2, 2, 20.0, "2024-03-11T00:00:01")

    d10 = profit.daily_profit(date(2024, 3, 10), [late, early], purchases)
    d11 = profit.daily_profit(date(2024, 3, 11), [late, early], purchases)

    assert (d10.sales_count, d10.units_sold) == (1, 1)
    assert (d11.sales_count, d11.units_sold) == (1, 2)
