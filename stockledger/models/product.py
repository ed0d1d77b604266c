"""SQLAlchemy model for the products the business sells."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


def new_id() -> str:
    return str(uuid4())


class Product(Base):
    """A sellable item bought in batches and sold by the unit.

    ``current_stock`` and ``total_units_sold`` are ledger counters: only
    :mod:`stockledger.services.ledger` writes them.
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("unit_selling_price >= 0", name="ck_products_price_nonneg"),
        CheckConstraint("cost_per_batch >= 0", name="ck_products_cost_nonneg"),
        CheckConstraint("units_per_batch > 0", name="ck_products_units_positive"),
        CheckConstraint("current_stock >= 0", name="ck_products_stock_nonneg"),
        CheckConstraint("total_units_sold >= 0", name="ck_products_sold_nonneg"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    name = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=True)
    unit_selling_price = Column(Numeric(10, 2), nullable=False)
    cost_per_batch = Column(Numeric(10, 2), nullable=False)
    units_per_batch = Column(Integer, nullable=False)
    current_stock = Column(Integer, nullable=False, default=0)
    total_units_sold = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    purchases = relationship(
        "StockPurchase",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sale_items = relationship(
        "SaleItem",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def cost_per_unit(self) -> Decimal:
        return Decimal(self.cost_per_batch) / Decimal(self.units_per_batch)


__all__ = ["Product", "new_id"]
