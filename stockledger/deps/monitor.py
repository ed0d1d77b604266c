from __future__ import annotations

from fastapi import Request

from ..services.alerts import LowStockMonitor


def get_low_stock_monitor(request: Request) -> LowStockMonitor:
    """Hand routes the monitor instance the application was built with."""

    monitor = getattr(request.app.state, "low_stock_monitor", None)
    if monitor is None:
        monitor = LowStockMonitor.from_settings()
        request.app.state.low_stock_monitor = monitor
    return monitor
