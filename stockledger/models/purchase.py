from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base
from .product import new_id


class StockPurchase(Base):
    """One restock: ``batches_purchased`` cartons bought at ``cost_per_batch`` each.

    ``cost_per_batch`` is the price paid this time and may differ from the
    product's current default.
    """

    __tablename__ = "stock_purchases"
    __table_args__ = (
        CheckConstraint("batches_purchased > 0", name="ck_purchases_batches_positive"),
        CheckConstraint("cost_per_batch >= 0", name="ck_purchases_cost_nonneg"),
        CheckConstraint("total_cost >= 0", name="ck_purchases_total_nonneg"),
        CheckConstraint("units_added > 0", name="ck_purchases_units_positive"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    product_id = Column(Text, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    batches_purchased = Column(Integer, nullable=False)
    cost_per_batch = Column(Numeric(10, 2), nullable=False)
    total_cost = Column(Numeric(10, 2), nullable=False)
    units_added = Column(Integer, nullable=False)
    purchase_date = Column(Text, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    product = relationship("Product", back_populates="purchases")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None


__all__ = ["StockPurchase"]
