"""Tiny home-grown migration helpers with plain-language explanations."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Simple, idempotent, additive migrations. ``Base.metadata.create_all`` builds
# fresh databases; these steps bring older files up to what the code expects.


def _column_names(engine: Engine, table: str) -> set[str]:
    """Return the set of column names, or an empty set when the table is absent."""

    inspector = inspect(engine)
    if not inspector.has_table(table):
        return set()
    return {column["name"] for column in inspector.get_columns(table)}


def _add_column(engine: Engine, table: str, col_def: str) -> None:
    """ALTER TABLE ADD COLUMN helper."""
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))
    logger.info("db.migrate.column_added", extra={"extra_data": {"table": table, "column": col_def}})


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    """Build an index only if it hasn't already been defined."""

    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def run_migrations(engine: Engine) -> None:
    """Bring the schema up-to-date with the expectations of the code."""

    product_cols = _column_names(engine, "products")
    if not product_cols:
        # Table absent -> nothing to migrate; create_all will build the fresh schema.
        return

    # Per-product alert thresholds arrived after the first release.
    if "low_stock_threshold" not in product_cols:
        _add_column(engine, "products", "low_stock_threshold INTEGER")

    # Report queries filter and sort by date, newest first.
    _create_index_if_not_exists(engine, "stock_purchases", "idx_stock_purchases_purchase_date", ["purchase_date DESC"])
    _create_index_if_not_exists(engine, "sales", "idx_sales_sale_date", ["sale_date DESC"])
    _create_index_if_not_exists(engine, "sale_items", "idx_sale_items_sale_product", ["sale_id", "product_id"])
