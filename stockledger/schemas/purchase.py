from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PurchaseCreate(BaseModel):
    product_id: str = Field(min_length=1)
    batches_purchased: int = Field(gt=0)
    # Leave unset to use the product's current batch cost.
    cost_per_batch: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    purchase_date: Optional[str] = None
    notes: Optional[str] = None


class PurchaseOut(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    batches_purchased: int
    cost_per_batch: Decimal
    total_cost: Decimal
    units_added: int
    purchase_date: str
    notes: Optional[str]

    class Config:
        from_attributes = True
