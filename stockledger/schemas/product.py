"""Pydantic schemas that describe product payloads for the API."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..core.money import quantize_currency


class ProductBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    unit_selling_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    cost_per_batch: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    units_per_batch: int = Field(gt=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name is required")
        return value.strip()


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    """Partial edit; stock counters are not accepted here."""

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    unit_selling_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    cost_per_batch: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    units_per_batch: Optional[int] = Field(default=None, gt=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)

    class Config:
        extra = "forbid"


class ProductOut(BaseModel):
    id: str
    name: str
    description: Optional[str]
    unit_selling_price: Decimal
    cost_per_batch: Decimal
    units_per_batch: int
    current_stock: int
    total_units_sold: int
    low_stock_threshold: Optional[int] = None
    cost_per_unit: Decimal
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True

    @field_validator("cost_per_unit")
    @classmethod
    def round_cost(cls, value: Decimal) -> Decimal:
        return quantize_currency(value)
