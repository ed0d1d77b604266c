from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SaleLineIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class SaleCreate(BaseModel):
    items: list[SaleLineIn] = Field(min_length=1)
    sale_date: Optional[str] = None
    notes: Optional[str] = None


class SaleUpdate(BaseModel):
    """Only the notes of a recorded sale may change."""

    notes: Optional[str] = None


class SaleItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    class Config:
        from_attributes = True


class SaleOut(BaseModel):
    id: str
    sale_date: str
    total_amount: Decimal
    notes: Optional[str]
    items: list[SaleItemOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


