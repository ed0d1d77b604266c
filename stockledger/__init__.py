"""Application object and top-level wiring for the Stock Ledger service.

This module is the glue between configuration, the database, the HTTP routers
and error handling. Reading it top to bottom shows *what* pieces exist,
*when* they are initialised and *how* a request reaches the ledger:

* the SQLAlchemy models are imported so ``create_all`` knows every table;
* missing tables are created and older databases are upgraded in place;
* the request-id middleware tags every log line produced while serving a call;
* ledger errors are turned into the JSON error envelope;
* one :class:`LowStockMonitor` lives on ``app.state`` for the whole process;
* the ``/api/v1`` routers are mounted, each guarded by the API key dependency.
"""

from __future__ import annotations

from fastapi import FastAPI

from .core.config import settings
from .core.errors import register_exception_handlers
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware
from .services.alerts import LowStockMonitor

# Importing the SQLAlchemy models registers them with the metadata. Without
# this step ``Base.metadata.create_all`` would not know about our tables.
from . import models as _models  # noqa: F401

# ---------- App init ----------
app = FastAPI(title=settings.APP_NAME)

# ---------- DB init/migrations ----------
# ``create_all`` covers brand-new databases, ``run_migrations`` upgrades
# existing ones. Running both on import keeps development and tests
# self-starting.
Base.metadata.create_all(bind=engine)
run_migrations(engine)

# ---------- Middleware & errors ----------
app.add_middleware(RequestIdMiddleware)
register_exception_handlers(app)

# ---------- Alerts ----------
# Per-day alert counts are kept in memory, so the monitor must outlive a
# single request.
app.state.low_stock_monitor = LowStockMonitor.from_settings()

# ---------- Routers ----------
# Every router carries the X-API-Key dependency itself.
from .routers import api_products as api_products_router  # noqa: E402

app.include_router(api_products_router.router)

from .routers import api_purchases as api_purchases_router  # noqa: E402

app.include_router(api_purchases_router.router)

from .routers import api_sales as api_sales_router  # noqa: E402

app.include_router(api_sales_router.router)

from .routers import api_reports as api_reports_router  # noqa: E402

app.include_router(api_reports_router.router)


__all__ = ["app"]
