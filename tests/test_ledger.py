import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.db.session import Base, enable_sqlite_foreign_keys
from stockledger.core.errors import (
    InsufficientStockError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PersistenceError,
)
from stockledger.crud.products import create_product, get_product
from stockledger.models.product import Product
from stockledger.models.purchase import StockPurchase
from stockledger.models.sale import Sale, SaleItem
from stockledger.services import ledger as ledger_service
from stockledger.services.ledger import (
    SaleLine,
    check_stock,
    delete_sale,
    get_sale,
    list_purchases,
    list_sales,
    record_purchase,
    record_sale,
    restore_stock,
    update_sale_notes,
)

# Ensure models are registered so metadata tables are created
from stockledger import models as ledger_models  # noqa: F401


@pytest.fixture()
def db_session():
    engine = enable_sqlite_foreign_keys(create_engine("sqlite://", connect_args={"check_same_thread": False}))
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _cola(db_session, **overrides):
    payload = {
        "name": "Cola 330ml",
        "unit_selling_price": "8.00",
        "cost_per_batch": "60.00",
        "units_per_batch": 12,
    }
    payload.update(overrides)
    return create_product(db_session, payload)


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


def test_purchase_sale_delete_cycle(db_session):
    product = _cola(db_session)
    assert product.current_stock == 0
    assert product.total_units_sold == 0

    purchase = record_purchase(db_session, product_id=product.id, batches_purchased=2)
    assert purchase.units_added == 24
    assert purchase.total_cost == Decimal("120.00")
    assert purchase.cost_per_batch == Decimal("60.00")
    assert get_product(db_session, product.id).current_stock == 24

    sale = record_sale(db_session, [{"product_id": product.id, "quantity": 5}], notes="  walk-in  ")
    assert sale.total_amount == Decimal("40.00")
    assert sale.notes == "walk-in"
    assert len(sale.items) == 1
    assert sale.items[0].unit_price == Decimal("8.00")
    assert sale.items[0].subtotal == Decimal("40.00")
    product = get_product(db_session, product.id)
    assert product.current_stock == 19
    assert product.total_units_sold == 5

    delete_sale(db_session, sale)
    product = get_product(db_session, product.id)
    assert product.current_stock == 24
    assert product.total_units_sold == 0
    assert _count(db_session, Sale) == 0
    assert _count(db_session, SaleItem) == 0


def test_purchase_uses_explicit_batch_cost(db_session):
    product = _cola(db_session)
    purchase = record_purchase(db_session, product_id=product.id, batches_purchased=3, cost_per_batch="55.50")
    assert purchase.total_cost == Decimal("166.50")
    assert purchase.units_added == 36
    # The catalogue price is left alone.
    assert get_product(db_session, product.id).cost_per_batch == Decimal("60.00")


@pytest.mark.parametrize("batches", [0, -1, 1.5, True])
def test_purchase_rejects_bad_batch_counts(db_session, batches):
    product = _cola(db_session)
    with pytest.raises(InvalidInputError):
        record_purchase(db_session, product_id=product.id, batches_purchased=batches)
    assert _count(db_session, StockPurchase) == 0
    assert get_product(db_session, product.id).current_stock == 0


def test_purchase_unknown_product(db_session):
    with pytest.raises(NotFoundError):
        record_purchase(db_session, product_id="missing", batches_purchased=1)


def test_oversell_is_rejected_without_side_effects(db_session):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=2)

    with pytest.raises(InsufficientStockError) as excinfo:
        record_sale(db_session, [{"product_id": product.id, "quantity": 25}])

    assert excinfo.value.available == 24
    assert excinfo.value.requested == 25
    assert "Cola 330ml" in str(excinfo.value)
    assert _count(db_session, Sale) == 0
    product = get_product(db_session, product.id)
    assert product.current_stock == 24
    assert product.total_units_sold == 0


def test_repeated_lines_are_summed_before_stock_check(db_session):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=2)
    lines = [SaleLine(product.id, 15), SaleLine(product.id, 10)]

    with pytest.raises(InsufficientStockError) as excinfo:
        check_stock(db_session, lines)
    assert excinfo.value.requested == 25

    with pytest.raises(InsufficientStockError):
        record_sale(db_session, lines)
    assert get_product(db_session, product.id).current_stock == 24


def test_multi_line_sale_totals_and_counters(db_session):
    cola = _cola(db_session)
    chips = create_product(
        db_session,
        {"name": "Chips", "unit_selling_price": "12.50", "cost_per_batch": "100.00", "units_per_batch": 10},
    )
    record_purchase(db_session, product_id=cola.id, batches_purchased=1)
    record_purchase(db_session, product_id=chips.id, batches_purchased=1)

    sale = record_sale(
        db_session,
        [
            {"product_id": cola.id, "quantity": 2},
            {"product_id": chips.id, "quantity": 3},
            {"product_id": cola.id, "quantity": 1},
        ],
    )

    assert sale.total_amount == Decimal("61.50")
    assert sale.total_amount == sum((item.subtotal for item in sale.items), Decimal("0"))
    assert get_product(db_session, cola.id).current_stock == 9
    assert get_product(db_session, cola.id).total_units_sold == 3
    assert get_product(db_session, chips.id).current_stock == 7


def test_sale_price_is_captured_at_sale_time(db_session):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=1)
    sale = record_sale(db_session, [{"product_id": product.id, "quantity": 2}])

    product.unit_selling_price = Decimal("9.00")
    db_session.commit()

    sale = get_sale(db_session, sale.id)
    assert sale.items[0].unit_price == Decimal("8.00")
    assert sale.total_amount == Decimal("16.00")


@pytest.mark.parametrize(
    "lines",
    [
        [],
        [{"product_id": "", "quantity": 1}],
        [{"product_id": "x", "quantity": 0}],
        [{"product_id": "x", "quantity": -2}],
    ],
)
def test_sale_rejects_invalid_lines(db_session, lines):
    with pytest.raises(InvalidInputError):
        record_sale(db_session, lines)


def test_sale_with_unknown_product(db_session):
    with pytest.raises(NotFoundError):
        record_sale(db_session, [{"product_id": "nope", "quantity": 1}])
    assert _count(db_session, Sale) == 0


def test_restore_stock_is_staged_until_the_delete_commits(db_session):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=1)
    sale = record_sale(db_session, [{"product_id": product.id, "quantity": 4}])

    with pytest.raises(LedgerError):
        restore_stock(db_session, product.id, 5)

    restore_stock(db_session, product.id, 3)
    db_session.rollback()
    product = get_product(db_session, product.id)
    assert product.current_stock == 8
    assert product.total_units_sold == 4

    # The sale is still deletable and gives back exactly its own units.
    delete_sale(db_session, sale)
    product = get_product(db_session, product.id)
    assert product.current_stock == 12
    assert product.total_units_sold == 0
    assert _count(db_session, Sale) == 0


def _disk_error(mapper, connection, target):
    raise OperationalError("INSERT", {}, Exception("disk I/O error"))


@pytest.fixture()
def failing_writes():
    """Register ``(model, event)`` pairs that fail mid-flush; removed afterwards."""

    registered = []

    def _fail(model, identifier):
        event.listen(model, identifier, _disk_error)
        registered.append((model, identifier))

    yield _fail
    for model, identifier in registered:
        event.remove(model, identifier, _disk_error)


def test_failed_purchase_insert_rolls_back(db_session, failing_writes):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=1)
    failing_writes(StockPurchase, "before_insert")

    with pytest.raises(PersistenceError):
        record_purchase(db_session, product_id=product.id, batches_purchased=2)

    assert _count(db_session, StockPurchase) == 1
    assert get_product(db_session, product.id).current_stock == 12


def test_failed_sale_line_insert_rolls_back(db_session, failing_writes):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=2)
    failing_writes(SaleItem, "before_insert")

    with pytest.raises(PersistenceError):
        record_sale(db_session, [{"product_id": product.id, "quantity": 5}])

    assert _count(db_session, Sale) == 0
    assert _count(db_session, SaleItem) == 0
    product = get_product(db_session, product.id)
    assert product.current_stock == 24
    assert product.total_units_sold == 0


def test_failed_sale_delete_keeps_sale_and_counters(db_session, failing_writes):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=2)
    sale = record_sale(db_session, [{"product_id": product.id, "quantity": 5}])
    failing_writes(Sale, "before_delete")

    with pytest.raises(PersistenceError):
        delete_sale(db_session, sale)

    assert _count(db_session, Sale) == 1
    assert _count(db_session, SaleItem) == 1
    product = get_product(db_session, product.id)
    assert product.current_stock == 19
    assert product.total_units_sold == 5


def test_failed_commit_is_rolled_back(db_session, monkeypatch):
    product = _cola(db_session)

    def _broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", _broken_commit)
    with pytest.raises(PersistenceError):
        record_purchase(db_session, product_id=product.id, batches_purchased=1)
    monkeypatch.undo()

    assert _count(db_session, StockPurchase) == 0
    assert get_product(db_session, product.id).current_stock == 0


def test_decrement_rejects_stock_taken_after_the_check(db_session, monkeypatch):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=2)
    checked = ledger_service.check_stock

    def _check_then_drain(db, lines):
        products = checked(db, lines)
        # Another writer empties the shelf between the check and the decrement.
        db.execute(update(Product).where(Product.id == product.id).values(current_stock=2))
        return products

    monkeypatch.setattr(ledger_service, "check_stock", _check_then_drain)
    with pytest.raises(InsufficientStockError) as excinfo:
        record_sale(db_session, [{"product_id": product.id, "quantity": 5}])

    assert excinfo.value.available == 2
    assert excinfo.value.requested == 5
    assert _count(db_session, Sale) == 0
    product = get_product(db_session, product.id)
    assert product.current_stock == 24
    assert product.total_units_sold == 0


def test_update_sale_notes_leaves_lines_alone(db_session):
    product = _cola(db_session)
    record_purchase(db_session, product_id=product.id, batches_purchased=1)
    sale = record_sale(db_session, [{"product_id": product.id, "quantity": 1}])

    updated = update_sale_notes(db_session, sale, "paid by card")
    assert updated.notes == "paid by card"
    assert updated.total_amount == Decimal("8.00")
    assert get_product(db_session, product.id).current_stock == 11


def test_listings_are_newest_first_and_filterable(db_session):
    cola = _cola(db_session)
    chips = create_product(
        db_session,
        {"name": "Chips", "unit_selling_price": "12.50", "cost_per_batch": "100.00", "units_per_batch": 10},
    )
    record_purchase(db_session, product_id=cola.id, batches_purchased=1, purchase_date="2024-05-01T08:00:00Z")
    record_purchase(db_session, product_id=chips.id, batches_purchased=1, purchase_date="2024-05-02T08:00:00Z")
    record_sale(db_session, [{"product_id": cola.id, "quantity": 1}], sale_date="2024-05-03T08:00:00Z")
    record_sale(db_session, [{"product_id": cola.id, "quantity": 1}], sale_date="2024-05-04T08:00:00Z")

    purchases = list_purchases(db_session)
    assert [p.product_id for p in purchases] == [chips.id, cola.id]
    assert [p.product_id for p in list_purchases(db_session, product_id=cola.id)] == [cola.id]

    sales = list_sales(db_session)
    assert [s.sale_date for s in sales] == ["2024-05-04T08:00:00Z", "2024-05-03T08:00:00Z"]
