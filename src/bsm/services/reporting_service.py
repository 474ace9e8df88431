from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from bsm.domain import profit
from bsm.domain.profit import DailyProfit, MonthlyProfit

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSummary:
    today: DailyProfit
    all_time_profit: float
    stock_levels: list
    outstanding_lending: float


class ReportingService:
    def __init__(self, repo, inventory_service=None, lending_service=None):
        self.repo = repo
        self.inventory = inventory_service
        self.lending = lending_service

    def _snapshot(self) -> tuple[list, list]:
        sales = self.repo.list_sales()
        purchases = self.repo.list_inventory()
        for sku in profit.zero_cost_skus(sales, purchases):
            log.warning("zero_cost_sku sku=%s reason=no_purchase_history", sku)
        return sales, purchases

    def daily_report(self, day: date) -> DailyProfit:
        sales, purchases = self._snapshot()
        return profit.daily_profit(day, sales, purchases)

    def monthly_report(self) -> list[MonthlyProfit]:
        sales, purchases = self._snapshot()
        return profit.monthly_profits(sales, purchases)

    def total_profit(self) -> float:
        sales, purchases = self._snapshot()
        return profit.total_profit(sales, purchases)

    def zero_cost_skus(self) -> list[str]:
        return profit.zero_cost_skus(self.repo.list_sales(), self.repo.list_inventory())

    def dashboard_summary(self, day: date) -> DashboardSummary:
        sales, purchases = self._snapshot()
        return DashboardSummary(
            today=profit.daily_profit(day, sales, purchases),
            all_time_profit=profit.total_profit(sales, purchases),
            stock_levels=self.inventory.stock_levels() if self.inventory else [],
            outstanding_lending=self.lending.outstanding_lending() if self.lending else 0.0,
        )

    def export_profit_report_excel(self, path, day: date) -> None:
        """Write the workbook to a file path or a binary file object."""
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        sales, purchases = self._snapshot()
        daily = profit.daily_profit(day, sales, purchases)
        monthly = profit.monthly_profits(sales, purchases)
        all_time = profit.total_profit(sales, purchases)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Profit summary"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Day"
        ws["B3"] = day.isoformat()

        rows = [
            ("Revenue", daily.revenue, "money"),
            ("Cost of goods sold", daily.cost, "money"),
            ("Profit", daily.profit, "money"),
            ("Units sold", daily.units_sold, "int"),
            ("Sales count", daily.sales_count, "int"),
            ("Stock purchased", daily.stock_spent, "money"),
            ("All-time profit", all_time, "money"),
        ]
        start_row = 5
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])
        set_widths(ws, {"A": 24, "B": 18})

        # -------- 2) Monthly --------
        ws2 = wb.create_sheet("Monthly")
        ws2.append(["Month", "Revenue", "Cost", "Profit", "Units", "Sales", "Stock purchased"])
        bold_row(ws2, 1)
        for out_row, m in enumerate(monthly, start=2):
            ws2.append([m.month, m.revenue, m.cost, m.profit, m.units_sold, m.sales_count, m.stock_spent])
            for col in ("B", "C", "D", "G"):
                money(ws2[f"{col}{out_row}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 10, "B": 14, "C": 14, "D": 14, "E": 8, "F": 8, "G": 16})
        if ws2.max_row >= 2:
            add_table(ws2, "MonthlyProfit", 1, 1, ws2.max_row, 7)

        # -------- 3) Size Breakdown --------
        ws3 = wb.create_sheet("Size Breakdown")
        ws3.append(["Size", "Quantity", "Avg unit cost", "Revenue", "Cost", "Profit"])
        bold_row(ws3, 1)
        for out_row, s in enumerate(daily.size_breakdown, start=2):
            ws3.append([s.size, s.quantity, s.average_unit_cost, s.revenue, s.cost, s.profit])
            for col in ("C", "D", "E", "F"):
                money(ws3[f"{col}{out_row}"])
        set_widths(ws3, {"A": 10, "B": 10, "C": 14, "D": 14, "E": 14, "F": 14})

        # -------- 4) Sales Detail --------
        ws4 = wb.create_sheet("Sales Detail")
        ws4.append(["Sale ID", "Created", "SKU", "Qty", "Unit price", "Revenue", "COGS", "Profit", "Status"])
        bold_row(ws4, 1)
        out_row = 2
        for s in sales:
            if profit.to_datetime(s.created_at).date() != day:
                continue
            revenue = profit.sale_revenue(s)
            cogs = profit.sale_cogs(s, purchases)
            ws4.append([
                s.id, s.created_at, s.sku, s.quantity, s.price_per_unit,
                round(revenue, 2), round(cogs, 2), round(revenue - cogs, 2), s.payment_status,
            ])
            for col in ("E", "F", "G", "H"):
                money(ws4[f"{col}{out_row}"])
            out_row += 1
        ws4.freeze_panes = "A2"
        set_widths(ws4, {"A": 8, "B": 20, "C": 18, "D": 6, "E": 12, "F": 12, "G": 12, "H": 12, "I": 10})
        if ws4.max_row >= 2:
            add_table(ws4, "SalesDetail", 1, 1, ws4.max_row, 9)

        wb.save(path)
        log.info("profit_report_exported path=%s day=%s", path, day.isoformat())
