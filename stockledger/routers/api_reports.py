from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.products import list_products
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..deps.monitor import get_low_stock_monitor
from ..schemas.metrics import DashboardOut, LowStockOut
from ..services.alerts import LowStockMonitor
from ..services.metrics import calculate_dashboard_metrics
from ..services.windows import resolve_window

router = APIRouter(prefix="/api/v1", tags=["reports"], dependencies=[Depends(require_api_key)])


@router.get("/metrics", response_model=DashboardOut)
def api_dashboard_metrics(
    window: str = "all",
    start: date | None = None,
    end: date | None = None,
    recent: int | None = None,
    db: Session = Depends(get_db),
    monitor: LowStockMonitor = Depends(get_low_stock_monitor),
):
    return calculate_dashboard_metrics(
        db,
        resolve_window(window, start=start, end=end),
        monitor=monitor,
        recent_limit=recent,
    )


@router.get("/alerts/low-stock", response_model=list[LowStockOut])
def api_low_stock(
    db: Session = Depends(get_db),
    monitor: LowStockMonitor = Depends(get_low_stock_monitor),
):
    return [alert.as_dict() for alert in monitor.evaluate(list_products(db, limit=None))]
