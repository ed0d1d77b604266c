"""Ledger engine: the only code that moves ``current_stock`` and ``total_units_sold``.

Each public operation is one unit of work. Row inserts and counter updates
are staged on the session and committed together; any failure rolls the
whole unit back, so an insert can never land without its counter effect (or
the other way round). Nothing here retries; callers decide whether to
re-submit.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import (
    InsufficientStockError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PersistenceError,
)
from ..core.money import quantize_currency, sum_currency, to_decimal
from ..models.product import Product
from ..models.purchase import StockPurchase
from ..models.sale import Sale, SaleItem
from .windows import to_storage, utcnow_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    quantity: int


def _positive_int(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be a whole number")
    if value <= 0:
        raise InvalidInputError(f"{field} must be greater than zero")
    return value


def _non_negative_amount(value: object, field: str) -> Decimal:
    try:
        amount = quantize_currency(to_decimal(value))
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{field} must be a number") from exc
    if amount < 0:
        raise InvalidInputError(f"{field} must be zero or more")
    return amount


def _clean_notes(notes: str | None) -> str | None:
    return (notes or "").strip() or None


def _timestamp(value: str | datetime | None) -> str:
    return to_storage(value) if value else utcnow_iso()


def _require_product(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id) if product_id else None
    if product is None:
        raise NotFoundError(f"product {product_id!r} not found", details={"product_id": product_id})
    return product


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("ledger.commit_failed", extra={"extra_data": {"action": action}})
        raise PersistenceError(f"could not {action}; nothing was applied") from exc


def _add_stock(db: Session, product_id: str, units: int, now: str) -> None:
    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(current_stock=Product.current_stock + units, updated_at=now)
    )


def _take_stock(db: Session, product: Product, quantity: int, now: str) -> None:
    # Conditional decrement: the row only changes while enough stock remains.
    result = db.execute(
        update(Product)
        .where(Product.id == product.id, Product.current_stock >= quantity)
        .values(
            current_stock=Product.current_stock - quantity,
            total_units_sold=Product.total_units_sold + quantity,
            updated_at=now,
        )
    )
    if result.rowcount != 1:
        db.refresh(product, attribute_names=["current_stock"])
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=int(product.current_stock),
            requested=quantity,
        )


def record_purchase(
    db: Session,
    *,
    product_id: str,
    batches_purchased: int,
    cost_per_batch: object | None = None,
    purchase_date: str | datetime | None = None,
    notes: str | None = None,
) -> StockPurchase:
    """Record a restock and add ``batches x units_per_batch`` units to stock.

    ``cost_per_batch`` defaults to the product's current batch cost.
    """

    batches = _positive_int(batches_purchased, "batches_purchased")
    product = _require_product(db, product_id)
    unit_cost = _non_negative_amount(
        product.cost_per_batch if cost_per_batch is None else cost_per_batch,
        "cost_per_batch",
    )
    units_added = batches * int(product.units_per_batch)
    now = utcnow_iso()
    purchase = StockPurchase(
        product_id=product.id,
        batches_purchased=batches,
        cost_per_batch=unit_cost,
        total_cost=quantize_currency(unit_cost * batches),
        units_added=units_added,
        purchase_date=_timestamp(purchase_date),
        notes=_clean_notes(notes),
    )
    try:
        db.add(purchase)
        db.flush()
        _add_stock(db, product.id, units_added, now)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not record purchase for {product.name}; nothing was applied") from exc
    _commit(db, f"record purchase for {product.name}")
    db.refresh(purchase)
    db.refresh(product)
    logger.info(
        "ledger.purchase.recorded",
        extra={
            "extra_data": {
                "purchase_id": purchase.id,
                "product_id": product.id,
                "units_added": units_added,
                "total_cost": str(purchase.total_cost),
            }
        },
    )
    return purchase


def _normalize_lines(lines: Iterable[SaleLine | Mapping[str, object]]) -> list[SaleLine]:
    normalized: list[SaleLine] = []
    for index, line in enumerate(lines, start=1):
        if isinstance(line, Mapping):
            product_id = line.get("product_id")
            quantity = line.get("quantity")
        else:
            product_id = line.product_id
            quantity = line.quantity
        if not product_id or not str(product_id).strip():
            raise InvalidInputError(f"line {index}: select a product")
        normalized.append(SaleLine(product_id=str(product_id).strip(), quantity=_positive_int(quantity, f"line {index} quantity")))
    if not normalized:
        raise InvalidInputError("a sale needs at least one line item")
    return normalized


def check_stock(db: Session, lines: Iterable[SaleLine | Mapping[str, object]]) -> dict[str, Product]:
    """Compare requested quantities (summed per product) with current stock.

    Returns the products keyed by id; raises on the first product that is
    short, naming it with the available and requested amounts.
    """

    requested: "OrderedDict[str, int]" = OrderedDict()
    for line in _normalize_lines(lines):
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    products: dict[str, Product] = {}
    for product_id, quantity in requested.items():
        product = _require_product(db, product_id)
        if quantity > int(product.current_stock):
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available=int(product.current_stock),
                requested=quantity,
            )
        products[product_id] = product
    return products


def record_sale(
    db: Session,
    lines: Iterable[SaleLine | Mapping[str, object]],
    *,
    sale_date: str | datetime | None = None,
    notes: str | None = None,
) -> Sale:
    """Record a multi-line sale at the products' current selling prices.

    Oversell is rejected: the whole sale fails with ``InsufficientStockError``
    and no row or counter changes.
    """

    normalized = _normalize_lines(lines)
    products = check_stock(db, normalized)
    now = utcnow_iso()

    items = []
    for line in normalized:
        product = products[line.product_id]
        unit_price = quantize_currency(product.unit_selling_price)
        items.append(
            SaleItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price=unit_price,
                subtotal=quantize_currency(unit_price * line.quantity),
            )
        )
    sale = Sale(
        sale_date=_timestamp(sale_date),
        total_amount=sum_currency(item.subtotal for item in items),
        notes=_clean_notes(notes),
        items=items,
    )
    try:
        db.add(sale)
        db.flush()
        for line in normalized:
            _take_stock(db, products[line.product_id], line.quantity, now)
    except InsufficientStockError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("could not record sale; nothing was applied") from exc
    _commit(db, "record sale")
    db.refresh(sale)
    for product in products.values():
        db.refresh(product)
    logger.info(
        "ledger.sale.recorded",
        extra={
            "extra_data": {
                "sale_id": sale.id,
                "lines": len(items),
                "units": sum(line.quantity for line in normalized),
                "total_amount": str(sale.total_amount),
            }
        },
    )
    return sale


def restore_stock(db: Session, product_id: str, quantity: int) -> Product:
    """Stage the compensation for one sold line: give ``quantity`` units back.

    Nothing is committed here. The only caller is :func:`delete_sale`, which
    stages one restoration per line and commits them together with the
    delete.
    """

    units = _positive_int(quantity, "quantity")
    product = _require_product(db, product_id)
    if units > int(product.total_units_sold):
        raise LedgerError(
            f"cannot restore {units} units of {product.name}; only {product.total_units_sold} recorded as sold",
            details={"product_id": product.id, "total_units_sold": int(product.total_units_sold), "requested": units},
        )
    try:
        db.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(
                current_stock=Product.current_stock + units,
                total_units_sold=Product.total_units_sold - units,
                updated_at=utcnow_iso(),
            )
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not restore stock for {product.name}") from exc
    logger.info(
        "ledger.stock.restored",
        extra={"extra_data": {"product_id": product.id, "quantity": units}},
    )
    return product


def get_sale(db: Session, sale_id: str) -> Sale | None:
    return db.get(Sale, sale_id)


def delete_sale(db: Session, sale: Sale) -> None:
    """Delete a sale, first giving every line's units back to its product."""

    sale_id = sale.id
    lines = [(item.product_id, item.quantity) for item in sale.items]
    try:
        for product_id, quantity in lines:
            restore_stock(db, product_id, quantity)
        db.delete(sale)
        db.flush()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not delete sale {sale_id}; nothing was applied") from exc
    _commit(db, f"delete sale {sale_id}")
    logger.info("ledger.sale.deleted", extra={"extra_data": {"sale_id": sale_id, "lines": len(lines)}})


def update_sale_notes(db: Session, sale: Sale, notes: str | None) -> Sale:
    """Sales are otherwise immutable; delete and re-record to change lines."""

    sale.notes = _clean_notes(notes)
    _commit(db, f"update sale {sale.id}")
    db.refresh(sale)
    return sale


def list_sales(db: Session, window=None, limit: int | None = 200, offset: int = 0) -> list[Sale]:
    stmt = select(Sale).order_by(Sale.sale_date.desc(), Sale.id)
    if window is not None:
        stmt = window.apply(stmt, Sale.sale_date)
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def list_purchases(
    db: Session,
    *,
    product_id: str | None = None,
    window=None,
    limit: int | None = 200,
    offset: int = 0,
) -> list[StockPurchase]:
    stmt = select(StockPurchase).order_by(StockPurchase.purchase_date.desc(), StockPurchase.id)
    if product_id:
        stmt = stmt.where(StockPurchase.product_id == product_id)
    if window is not None:
        stmt = window.apply(stmt, StockPurchase.purchase_date)
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


__all__ = [
    "SaleLine",
    "check_stock",
    "delete_sale",
    "get_sale",
    "list_purchases",
    "list_sales",
    "record_purchase",
    "record_sale",
    "update_sale_notes",
]
