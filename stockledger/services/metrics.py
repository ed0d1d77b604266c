"""Revenue, cost and profit reports.

The reductions in the first half of this module are pure: they take plain
rows and a :class:`~stockledger.services.windows.TimeWindow` and never touch
the database. The ``calculate_*`` functions at the bottom load rows once and
feed them through those reductions, so every screen filters sales and
purchases with the same window rule.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.money import percentage, quantize_currency, sum_currency, to_decimal
from ..models.product import Product
from ..models.purchase import StockPurchase
from ..models.sale import Sale, SaleItem
from .alerts import LowStockMonitor
from .ledger import list_sales
from .windows import ALL_TIME, TimeWindow


@dataclass(frozen=True)
class SoldLine:
    sale_id: str
    sale_date: str
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class PurchaseLine:
    purchase_id: str
    purchase_date: str
    product_id: str
    batches_purchased: int
    cost_per_batch: Decimal
    total_cost: Decimal
    units_added: int


@dataclass(frozen=True)
class WindowTotals:
    revenue: Decimal
    units_sold: int
    cost: Decimal
    profit: Decimal
    profit_margin: Decimal
    sale_count: int
    purchase_count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "revenue": self.revenue,
            "units_sold": self.units_sold,
            "cost": self.cost,
            "profit": self.profit,
            "profit_margin": self.profit_margin,
            "sale_count": self.sale_count,
            "purchase_count": self.purchase_count,
        }


# ---------- pure reductions ----------


def sold_in_window(lines: Iterable[SoldLine], window: TimeWindow = ALL_TIME) -> list[SoldLine]:
    return [line for line in lines if window.contains(line.sale_date)]


def purchased_in_window(purchases: Iterable[PurchaseLine], window: TimeWindow = ALL_TIME) -> list[PurchaseLine]:
    return [purchase for purchase in purchases if window.contains(purchase.purchase_date)]


def window_revenue(lines: Iterable[SoldLine], window: TimeWindow = ALL_TIME) -> Decimal:
    return sum_currency(line.subtotal for line in sold_in_window(lines, window))


def window_units_sold(lines: Iterable[SoldLine], window: TimeWindow = ALL_TIME) -> int:
    return sum(line.quantity for line in sold_in_window(lines, window))


def window_cost(purchases: Iterable[PurchaseLine], window: TimeWindow = ALL_TIME) -> Decimal:
    return sum_currency(purchase.total_cost for purchase in purchased_in_window(purchases, window))


def window_profit(
    lines: Iterable[SoldLine],
    purchases: Iterable[PurchaseLine],
    window: TimeWindow = ALL_TIME,
) -> Decimal:
    return quantize_currency(window_revenue(lines, window) - window_cost(purchases, window))


def per_product_revenue(lines: Iterable[SoldLine], product_id: str, window: TimeWindow = ALL_TIME) -> Decimal:
    return window_revenue((line for line in lines if line.product_id == product_id), window)


def per_product_units(lines: Iterable[SoldLine], product_id: str, window: TimeWindow = ALL_TIME) -> int:
    return window_units_sold((line for line in lines if line.product_id == product_id), window)


def per_product_cost(purchases: Iterable[PurchaseLine], product_id: str, window: TimeWindow = ALL_TIME) -> Decimal:
    return window_cost((p for p in purchases if p.product_id == product_id), window)


def profit_margin(profit: Any, revenue: Any) -> Decimal:
    """Profit as a percentage of revenue; defined as 0 when there is no revenue."""

    return percentage(profit, revenue)


def cost_per_unit(product: Product) -> Decimal:
    return quantize_currency(product.cost_per_unit)


def profit_per_unit(product: Product) -> Decimal:
    """Margin on one unit at today's prices, whatever was paid historically."""

    return quantize_currency(to_decimal(product.unit_selling_price) - product.cost_per_unit)


def lifetime_profit(product_id: str, lines: Iterable[SoldLine], purchases: Iterable[PurchaseLine]) -> Decimal:
    revenue = per_product_revenue(lines, product_id)
    cost = per_product_cost(purchases, product_id)
    return quantize_currency(revenue - cost)


def summarize(
    lines: Sequence[SoldLine],
    purchases: Sequence[PurchaseLine],
    window: TimeWindow = ALL_TIME,
) -> WindowTotals:
    sold = sold_in_window(lines, window)
    bought = purchased_in_window(purchases, window)
    revenue = sum_currency(line.subtotal for line in sold)
    cost = sum_currency(purchase.total_cost for purchase in bought)
    profit = quantize_currency(revenue - cost)
    return WindowTotals(
        revenue=revenue,
        units_sold=sum(line.quantity for line in sold),
        cost=cost,
        profit=profit,
        profit_margin=profit_margin(profit, revenue),
        sale_count=len({line.sale_id for line in sold}),
        purchase_count=len(bought),
    )


def product_breakdown(
    products: Iterable[Product],
    lines: Sequence[SoldLine],
    purchases: Sequence[PurchaseLine],
    window: TimeWindow = ALL_TIME,
) -> list[Dict[str, Any]]:
    """One row per product with window and lifetime figures, best sellers first."""

    window_revenue_by: Dict[str, Decimal] = defaultdict(Decimal)
    window_units_by: Dict[str, int] = defaultdict(int)
    window_cost_by: Dict[str, Decimal] = defaultdict(Decimal)

    for line in lines:
        if window.contains(line.sale_date):
            window_revenue_by[line.product_id] += to_decimal(line.subtotal)
            window_units_by[line.product_id] += line.quantity
    for purchase in purchases:
        if window.contains(purchase.purchase_date):
            window_cost_by[purchase.product_id] += to_decimal(purchase.total_cost)

    rows = []
    for product in products:
        revenue = quantize_currency(window_revenue_by[product.id])
        cost = quantize_currency(window_cost_by[product.id])
        profit = quantize_currency(revenue - cost)
        rows.append(
            {
                "product_id": product.id,
                "name": product.name,
                "current_stock": int(product.current_stock),
                "total_units_sold": int(product.total_units_sold),
                "revenue": revenue,
                "units_sold": window_units_by[product.id],
                "cost": cost,
                "profit": profit,
                "profit_margin": profit_margin(profit, revenue),
                "profit_per_unit": profit_per_unit(product),
                "lifetime_profit": lifetime_profit(product.id, lines, purchases),
            }
        )
    rows.sort(key=lambda row: (row["revenue"], row["units_sold"]), reverse=True)
    return rows


# ---------- loaders ----------


def load_sold_lines(db: Session, *, product_id: str | None = None) -> list[SoldLine]:
    stmt = (
        select(
            SaleItem.sale_id,
            Sale.sale_date,
            SaleItem.product_id,
            SaleItem.quantity,
            SaleItem.unit_price,
            SaleItem.subtotal,
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .order_by(Sale.sale_date.desc(), SaleItem.id)
    )
    if product_id:
        stmt = stmt.where(SaleItem.product_id == product_id)
    return [
        SoldLine(
            sale_id=row.sale_id,
            sale_date=row.sale_date,
            product_id=row.product_id,
            quantity=int(row.quantity),
            unit_price=quantize_currency(row.unit_price),
            subtotal=quantize_currency(row.subtotal),
        )
        for row in db.execute(stmt).all()
    ]


def load_purchase_lines(db: Session, *, product_id: str | None = None) -> list[PurchaseLine]:
    stmt = select(StockPurchase).order_by(StockPurchase.purchase_date.desc(), StockPurchase.id)
    if product_id:
        stmt = stmt.where(StockPurchase.product_id == product_id)
    return [
        PurchaseLine(
            purchase_id=purchase.id,
            purchase_date=purchase.purchase_date,
            product_id=purchase.product_id,
            batches_purchased=int(purchase.batches_purchased),
            cost_per_batch=quantize_currency(purchase.cost_per_batch),
            total_cost=quantize_currency(purchase.total_cost),
            units_added=int(purchase.units_added),
        )
        for purchase in db.execute(stmt).scalars().all()
    ]


def _recent_sales(db: Session, limit: int) -> list[Dict[str, Any]]:
    recent = []
    for sale in list_sales(db, limit=limit):
        recent.append(
            {
                "id": sale.id,
                "sale_date": sale.sale_date,
                "total_amount": quantize_currency(sale.total_amount),
                "notes": sale.notes,
                "items": [
                    {"product_id": item.product_id, "product_name": item.product_name, "quantity": item.quantity}
                    for item in sale.items
                ],
            }
        )
    return recent


# ---------- reports ----------


def calculate_dashboard_metrics(
    db: Session,
    window: TimeWindow = ALL_TIME,
    *,
    monitor: LowStockMonitor | None = None,
    recent_limit: int | None = None,
) -> Dict[str, Any]:
    """Aggregate the dashboard: window totals, product rows, recent sales, low stock."""

    products = db.execute(select(Product).order_by(Product.name)).scalars().all()
    lines = load_sold_lines(db)
    purchases = load_purchase_lines(db)
    totals = summarize(lines, purchases, window)
    watcher = monitor or LowStockMonitor.from_settings()

    return {
        "window": window.describe(),
        "currency": settings.CURRENCY,
        "totals": {**totals.as_dict(), "product_count": len(products)},
        "products": product_breakdown(products, lines, purchases, window),
        "recent_sales": _recent_sales(db, recent_limit or settings.RECENT_SALES_LIMIT),
        "low_stock": [alert.as_dict() for alert in watcher.evaluate(products)],
    }


def calculate_product_metrics(db: Session, product: Product, window: TimeWindow = ALL_TIME) -> Dict[str, Any]:
    """Everything the product detail view shows, for one product."""

    lines = load_sold_lines(db, product_id=product.id)
    purchases = load_purchase_lines(db, product_id=product.id)
    in_window = summarize(lines, purchases, window)
    lifetime = summarize(lines, purchases, ALL_TIME)

    return {
        "product_id": product.id,
        "name": product.name,
        "window": window.describe(),
        "current_stock": int(product.current_stock),
        "total_units_sold": int(product.total_units_sold),
        "unit_selling_price": quantize_currency(product.unit_selling_price),
        "cost_per_unit": cost_per_unit(product),
        "profit_per_unit": profit_per_unit(product),
        "window_totals": in_window.as_dict(),
        "lifetime_revenue": lifetime.revenue,
        "lifetime_cost": lifetime.cost,
        "lifetime_profit": lifetime_profit(product.id, lines, purchases),
        "lifetime_profit_margin": lifetime.profit_margin,
        "purchases": [
            {
                "id": purchase.purchase_id,
                "purchase_date": purchase.purchase_date,
                "batches_purchased": purchase.batches_purchased,
                "cost_per_batch": purchase.cost_per_batch,
                "total_cost": purchase.total_cost,
                "units_added": purchase.units_added,
            }
            for purchase in purchases
        ],
        "sales": [
            {
                "sale_id": line.sale_id,
                "sale_date": line.sale_date,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "subtotal": line.subtotal,
            }
            for line in lines
        ],
    }


__all__ = [
    "PurchaseLine",
    "SoldLine",
    "WindowTotals",
    "calculate_dashboard_metrics",
    "calculate_product_metrics",
    "cost_per_unit",
    "lifetime_profit",
    "load_purchase_lines",
    "load_sold_lines",
    "per_product_cost",
    "per_product_revenue",
    "per_product_units",
    "product_breakdown",
    "profit_margin",
    "profit_per_unit",
    "summarize",
    "window_cost",
    "window_profit",
    "window_revenue",
    "window_units_sold",
]
