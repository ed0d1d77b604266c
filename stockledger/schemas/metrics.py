"""Response shapes for the dashboard and product detail reports."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class WindowOut(BaseModel):
    kind: str
    start: Optional[str] = None
    end: Optional[str] = None


class WindowTotalsOut(BaseModel):
    revenue: Decimal
    units_sold: int
    cost: Decimal
    profit: Decimal
    profit_margin: Decimal
    sale_count: int
    purchase_count: int


class DashboardTotalsOut(WindowTotalsOut):
    product_count: int


class ProductRowOut(BaseModel):
    product_id: str
    name: str
    current_stock: int
    total_units_sold: int
    revenue: Decimal
    units_sold: int
    cost: Decimal
    profit: Decimal
    profit_margin: Decimal
    profit_per_unit: Decimal
    lifetime_profit: Decimal


class RecentSaleItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int


class RecentSaleOut(BaseModel):
    id: str
    sale_date: str
    total_amount: Decimal
    notes: Optional[str] = None
    items: list[RecentSaleItemOut] = Field(default_factory=list)


class LowStockOut(BaseModel):
    product_id: str
    name: str
    current_stock: int
    threshold: int
    message: str


class DashboardOut(BaseModel):
    window: WindowOut
    currency: str
    totals: DashboardTotalsOut
    products: list[ProductRowOut]
    recent_sales: list[RecentSaleOut]
    low_stock: list[LowStockOut]


class PurchaseHistoryOut(BaseModel):
    id: str
    purchase_date: str
    batches_purchased: int
    cost_per_batch: Decimal
    total_cost: Decimal
    units_added: int


class SaleHistoryOut(BaseModel):
    sale_id: str
    sale_date: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class ProductMetricsOut(BaseModel):
    product_id: str
    name: str
    window: WindowOut
    current_stock: int
    total_units_sold: int
    unit_selling_price: Decimal
    cost_per_unit: Decimal
    profit_per_unit: Decimal
    window_totals: WindowTotalsOut
    lifetime_revenue: Decimal
    lifetime_cost: Decimal
    lifetime_profit: Decimal
    lifetime_profit_margin: Decimal
    purchases: list[PurchaseHistoryOut]
    sales: list[SaleHistoryOut]
