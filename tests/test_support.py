import json
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect, text

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.config import Settings
from stockledger.core.logging import JsonLogFormatter
from stockledger.core.money import percentage, quantize_currency, sum_currency, to_decimal
from stockledger.db.migrate import run_migrations
from stockledger.db.session import Base
from stockledger.middlewares import request_id_ctx_var

# Ensure models are registered so metadata tables are created
from stockledger import models as ledger_models  # noqa: F401


def test_to_decimal_accepts_operator_input():
    assert to_decimal("R1,250.50") == Decimal("1250.50")
    assert to_decimal(" $3 ") == Decimal("3")
    assert to_decimal(2.5) == Decimal("2.5")
    assert to_decimal(None) == Decimal("0")
    with pytest.raises(ValueError):
        to_decimal("twelve")
    with pytest.raises(TypeError):
        to_decimal(True)


def test_currency_rounding_is_half_up():
    assert quantize_currency("2.345") == Decimal("2.35")
    assert quantize_currency("2.344") == Decimal("2.34")
    assert sum_currency(["0.10", "0.20", "0.30"]) == Decimal("0.60")
    assert percentage(1, 3) == Decimal("33.33")
    assert percentage(5, 0) == Decimal("0.00")


def test_threshold_setting_accepts_pairs_and_json(monkeypatch):
    monkeypatch.setenv("LOW_STOCK_THRESHOLDS", "Cola=5, Chips = 12")
    assert Settings().LOW_STOCK_THRESHOLDS == {"Cola": 5, "Chips": 12}

    monkeypatch.setenv("LOW_STOCK_THRESHOLDS", '{"Bread": 3}')
    assert Settings().LOW_STOCK_THRESHOLDS == {"Bread": 3}


def test_database_url_defaults_into_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv("DB_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    assert Settings().DB_URL == f"sqlite:///{tmp_path / 'ledger.db'}"

    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    assert Settings().DB_URL == "sqlite://"


def test_migrations_upgrade_older_product_table():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE products"))
        conn.execute(
            text(
                "CREATE TABLE products (id TEXT PRIMARY KEY, name TEXT NOT NULL, description TEXT, "
                "unit_selling_price NUMERIC(10, 2) NOT NULL, cost_per_batch NUMERIC(10, 2) NOT NULL, "
                "units_per_batch INTEGER NOT NULL, current_stock INTEGER NOT NULL, "
                "total_units_sold INTEGER NOT NULL, created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
            )
        )

    run_migrations(engine)
    run_migrations(engine)

    inspector = inspect(engine)
    assert "low_stock_threshold" in {c["name"] for c in inspector.get_columns("products")}
    assert "idx_sales_sale_date" in {i["name"] for i in inspector.get_indexes("sales")}


def test_migrations_skip_empty_database():
    engine = create_engine("sqlite://")
    run_migrations(engine)
    assert not inspect(engine).has_table("products")


def test_json_formatter_merges_extra_data_and_request_id():
    record = logging.LogRecord("stockledger.test", logging.INFO, __file__, 1, "ledger.sale.recorded", None, None)
    record.extra_data = {"sale_id": "s-1", "total_amount": Decimal("40.00")}
    token = request_id_ctx_var.set("req-1")
    try:
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "ledger.sale.recorded"
    assert payload["sale_id"] == "s-1"
    assert payload["total_amount"] == "40.00"
    assert payload["request_id"] == "req-1"
    assert payload["timestamp"].endswith("Z")
