"""Product CRUD helpers.

Only the descriptive and pricing fields are editable here. Stock counters
belong to the ledger service, and editing a price never rewrites the
purchases or sales recorded before it.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import asc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import InvalidInputError, PersistenceError
from ..core.money import quantize_currency, to_decimal
from ..models.product import Product
from ..models.sale import Sale, SaleItem
from ..services.windows import utcnow_iso

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "description", "unit_selling_price", "cost_per_batch", "units_per_batch", "low_stock_threshold")
LEDGER_FIELDS = ("current_stock", "total_units_sold")


def _clean_name(value: object) -> str:
    name = (value or "").strip() if isinstance(value, str) or value is None else str(value).strip()
    if not name:
        raise InvalidInputError("name is required")
    return name


def _clean_amount(value: object, field: str) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{field} is required")
    try:
        amount = quantize_currency(to_decimal(value))
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{field} must be a number") from exc
    if amount < 0:
        raise InvalidInputError(f"{field} must be zero or more")
    return amount


def _clean_count(value: object, field: str, *, allow_zero: bool = False) -> int:
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field} is required")
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{field} must be a whole number") from exc
    if count != value and not (isinstance(value, str) and value.strip() == str(count)):
        raise InvalidInputError(f"{field} must be a whole number")
    if count < 0 or (count == 0 and not allow_zero):
        raise InvalidInputError(f"{field} must be greater than zero" if not allow_zero else f"{field} must be zero or more")
    return count


def _clean_field(key: str, value: object) -> object:
    if key == "name":
        return _clean_name(value)
    if key == "description":
        text = (value or "").strip() if isinstance(value, str) or value is None else str(value)
        return text or None
    if key in ("unit_selling_price", "cost_per_batch"):
        return _clean_amount(value, key)
    if key == "units_per_batch":
        return _clean_count(value, key)
    if key == "low_stock_threshold":
        return None if value is None else _clean_count(value, key, allow_zero=True)
    raise InvalidInputError(f"{key} cannot be set")


def list_products(db: Session, limit: int | None = 200, offset: int = 0) -> list[Product]:
    stmt = select(Product).order_by(asc(Product.name), asc(Product.created_at))
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def get_product(db: Session, product_id: str) -> Product | None:
    return db.get(Product, product_id)


def count_products(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(Product)) or 0


def create_product(db: Session, payload: dict) -> Product:
    """Create a product with empty stock; ledger counters start at zero."""

    data = {key: payload[key] for key in EDITABLE_FIELDS if key in payload}
    for key in ("name", "unit_selling_price", "cost_per_batch", "units_per_batch"):
        if key not in data:
            raise InvalidInputError(f"{key} is required")
    cleaned = {key: _clean_field(key, value) for key, value in data.items()}
    now = utcnow_iso()
    product = Product(
        **cleaned,
        current_stock=0,
        total_units_sold=0,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(product)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not create product {cleaned['name']!r}") from exc
    db.refresh(product)
    logger.info("product.created", extra={"extra_data": {"product_id": product.id, "name": product.name}})
    return product


def update_product(db: Session, product: Product, payload: dict) -> Product:
    """Apply edits to pricing/description fields and refresh ``updated_at``.

    Attempts to write the ledger counters are refused rather than ignored so a
    stale client cannot silently believe it corrected stock.
    """

    blocked = [key for key in LEDGER_FIELDS if key in payload]
    if blocked:
        raise InvalidInputError(f"{', '.join(blocked)} is maintained by the ledger and cannot be edited")
    changes = {key: _clean_field(key, value) for key, value in payload.items() if key in EDITABLE_FIELDS}
    if not changes:
        return product
    for key, value in changes.items():
        setattr(product, key, value)
    product.updated_at = utcnow_iso()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not update product {product.id}") from exc
    db.refresh(product)
    logger.info("product.updated", extra={"extra_data": {"product_id": product.id, "fields": sorted(changes)}})
    return product


def delete_product(db: Session, product: Product) -> None:
    """Delete a product with its purchases and sale lines.

    Sales that contained the product keep their header; their totals are
    recomputed from the remaining lines.
    """

    product_id = product.id
    affected = db.execute(
        select(SaleItem.sale_id).where(SaleItem.product_id == product_id).distinct()
    ).scalars().all()
    try:
        db.delete(product)
        db.flush()
        for sale_id in affected:
            remaining = db.execute(
                select(SaleItem.subtotal).where(SaleItem.sale_id == sale_id, SaleItem.product_id != product_id)
            ).scalars().all()
            sale = db.get(Sale, sale_id)
            if sale is not None:
                sale.total_amount = sum((to_decimal(value) for value in remaining), Decimal("0"))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not delete product {product_id}") from exc
    db.expire_all()
    logger.info(
        "product.deleted",
        extra={"extra_data": {"product_id": product_id, "sales_recomputed": len(affected)}},
    )
