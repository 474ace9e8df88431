"""
Profit and cost-of-goods-sold calculations.

Everything here is a pure function of the sale and purchase lists handed in.
Costing is weighted-average: total spend on a SKU's batches divided by the
units purchased, taking only batches created on or before the moment of the
sale.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Optional

from bsm.domain.models import BOTTLE_SIZES, WATER_BOTTLE, sku_label

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class SizeProfit:
    size: str
    quantity: int
    average_unit_cost: float
    revenue: float
    cost: float
    profit: float


@dataclass(frozen=True)
class DailyProfit:
    day: date
    revenue: float
    cost: float
    profit: float
    units_sold: int
    sales_count: int
    stock_spent: float
    size_breakdown: list[SizeProfit] = field(default_factory=list)


@dataclass(frozen=True)
class MonthlyProfit:
    month: str
    revenue: float
    cost: float
    profit: float
    units_sold: int
    sales_count: int
    stock_spent: float


def _num(value) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def to_datetime(value) -> datetime:
    """Local naive datetime for a stored timestamp (datetime, ISO text or epoch ms)."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(float(value) / 1000)
        except (OverflowError, OSError, ValueError):
            return _EPOCH
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return _EPOCH
    else:
        return _EPOCH

    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _same_sku(record, product_type: str, bottle_size: Optional[str]) -> bool:
    if record.product_type != product_type:
        return False
    if product_type == WATER_BOTTLE:
        return record.bottle_size == bottle_size
    return True


def _batch_cost(purchase) -> float:
    unit_cost = getattr(purchase, "unit_cost", None)
    if unit_cost is not None:
        return _num(unit_cost) * _num(purchase.quantity)
    return _num(purchase.amount_paid)


def _weighted_average(batches: list) -> float:
    total_qty = sum(_num(p.quantity) for p in batches)
    if total_qty <= 0:
        return 0.0
    return sum(_batch_cost(p) for p in batches) / total_qty


def average_unit_cost(product_type: str, bottle_size: Optional[str], cutoff, purchases: Iterable) -> float:
    batches = [p for p in purchases if _same_sku(p, product_type, bottle_size)]
    cutoff_dt = to_datetime(cutoff)
    dated = [p for p in batches if to_datetime(p.created_at) <= cutoff_dt]
    # A sale recorded before any stock entry falls back to the all-time average.
    return _weighted_average(dated or batches)


def sale_revenue(sale) -> float:
    return _num(sale.price_per_unit) * _num(sale.quantity)


def sale_cogs(sale, purchases: Iterable) -> float:
    avg = average_unit_cost(sale.product_type, sale.bottle_size, sale.created_at, purchases)
    return avg * _num(sale.quantity)


def _on_day(records: Iterable, day: date) -> list:
    return [r for r in records if to_datetime(r.created_at).date() == day]


def _month_key(value) -> str:
    dt = to_datetime(value)
    return f"{dt.year:04d}-{dt.month:02d}"


def size_breakdown(day: date, sales: Iterable, purchases: Iterable) -> list[SizeProfit]:
    purchases = list(purchases)
    end_of_day = datetime.combine(day, time.max)

    by_size: dict[str, list] = defaultdict(list)
    for s in _on_day(sales, day):
        if s.product_type == WATER_BOTTLE and s.bottle_size:
            by_size[s.bottle_size].append(s)

    known = [size for size in BOTTLE_SIZES if size in by_size]
    extra = sorted(size for size in by_size if size not in BOTTLE_SIZES)

    out: list[SizeProfit] = []
    for size in known + extra:
        rows = by_size[size]
        revenue = sum(sale_revenue(s) for s in rows)
        cost = sum(sale_cogs(s, purchases) for s in rows)
        out.append(
            SizeProfit(
                size=size,
                quantity=int(sum(_num(s.quantity) for s in rows)),
                average_unit_cost=round(average_unit_cost(WATER_BOTTLE, size, end_of_day, purchases), 4),
                revenue=round(revenue, 2),
                cost=round(cost, 2),
                profit=round(revenue - cost, 2),
            )
        )
    return out


def daily_profit(day: date, sales: Iterable, purchases: Iterable) -> DailyProfit:
    sales = list(sales)
    purchases = list(purchases)

    day_sales = _on_day(sales, day)
    day_purchases = _on_day(purchases, day)

    revenue = sum(sale_revenue(s) for s in day_sales)
    cost = sum(sale_cogs(s, purchases) for s in day_sales)

    return DailyProfit(
        day=day,
        revenue=round(revenue, 2),
        cost=round(cost, 2),
        profit=round(revenue - cost, 2),
        units_sold=int(sum(_num(s.quantity) for s in day_sales)),
        sales_count=len(day_sales),
        stock_spent=round(sum(_num(p.amount_paid) for p in day_purchases), 2),
        size_breakdown=size_breakdown(day, day_sales, purchases),
    )


def monthly_profits(sales: Iterable, purchases: Iterable) -> list[MonthlyProfit]:
    sales = list(sales)
    purchases = list(purchases)

    acc: dict[str, dict[str, float]] = defaultdict(
        lambda: {"revenue": 0.0, "cost": 0.0, "units": 0.0, "count": 0, "spent": 0.0}
    )
    for s in sales:
        row = acc[_month_key(s.created_at)]
        row["revenue"] += sale_revenue(s)
        row["cost"] += sale_cogs(s, purchases)
        row["units"] += _num(s.quantity)
        row["count"] += 1
    for p in purchases:
        acc[_month_key(p.created_at)]["spent"] += _num(p.amount_paid)

    return [
        MonthlyProfit(
            month=month,
            revenue=round(row["revenue"], 2),
            cost=round(row["cost"], 2),
            profit=round(row["revenue"] - row["cost"], 2),
            units_sold=int(row["units"]),
            sales_count=int(row["count"]),
            stock_spent=round(row["spent"], 2),
        )
        for month, row in sorted(acc.items(), reverse=True)
    ]


def total_profit(sales: Iterable, purchases: Iterable) -> float:
    purchases = list(purchases)
    return round(sum(sale_revenue(s) - sale_cogs(s, purchases) for s in sales), 2)


def zero_cost_skus(sales: Iterable, purchases: Iterable) -> list[str]:
    """SKUs that were sold but have no purchase history at all (COGS counted as 0)."""
    purchases = list(purchases)
    missing: set[str] = set()
    for s in sales:
        if _num(s.quantity) <= 0:
            continue
        if not any(_same_sku(p, s.product_type, s.bottle_size) for p in purchases):
            missing.add(sku_label(s.product_type, s.bottle_size))
    return sorted(missing)
