from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base
from .product import new_id


class Sale(Base):
    """Transaction header; ``total_amount`` is the sum of its item subtotals."""

    __tablename__ = "sales"
    __table_args__ = (CheckConstraint("total_amount >= 0", name="ck_sales_total_nonneg"),)

    id = Column(Text, primary_key=True, default=new_id)
    sale_date = Column(Text, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class SaleItem(Base):
    __tablename__ = "sale_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sale_items_price_nonneg"),
        CheckConstraint("subtotal >= 0", name="ck_sale_items_subtotal_nonneg"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    sale_id = Column(Text, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Text, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items", lazy="joined")

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else "Unknown"


__all__ = ["Sale", "SaleItem"]
