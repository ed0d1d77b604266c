"""Low-stock alerts.

A :class:`LowStockMonitor` is built explicitly (the app keeps one on
``app.state``; tests build their own) and remembers how many alerts each
product has produced today so a busy selling day does not flood the operator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping
from zoneinfo import ZoneInfo

from ..core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LowStockAlert:
    product_id: str
    name: str
    current_stock: int
    threshold: int

    @property
    def message(self) -> str:
        return f"{self.name} is running low! Only {self.current_stock} left (threshold: {self.threshold})"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "current_stock": self.current_stock,
            "threshold": self.threshold,
            "message": self.message,
        }


def log_sink(alert: LowStockAlert) -> None:
    logger.warning(
        "inventory.low_stock",
        extra={"extra_data": {**alert.as_dict()}},
    )


@dataclass
class _History:
    day: date
    count: int = 0


@dataclass
class LowStockMonitor:
    """Decides which products are low and rate-limits the alerts sent for them.

    Threshold lookup order: the product's own ``low_stock_threshold``, then
    ``thresholds`` keyed by product name, then ``default_threshold``. A
    threshold of zero switches alerts off for that product.
    """

    thresholds: Mapping[str, int] = field(default_factory=dict)
    default_threshold: int = 0
    max_alerts_per_day: int = 2
    sink: Callable[[LowStockAlert], None] = log_sink
    tz: str = "UTC"
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    _history: Dict[str, _History] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def from_settings(cls, **overrides: Any) -> "LowStockMonitor":
        options: Dict[str, Any] = {
            "thresholds": dict(settings.LOW_STOCK_THRESHOLDS),
            "default_threshold": settings.LOW_STOCK_DEFAULT_THRESHOLD,
            "max_alerts_per_day": settings.LOW_STOCK_MAX_ALERTS_PER_DAY,
            "tz": settings.TZ,
        }
        options.update(overrides)
        return cls(**options)

    def threshold_for(self, product: Any) -> int:
        own = getattr(product, "low_stock_threshold", None)
        if own is not None:
            return int(own)
        if product.name in self.thresholds:
            return int(self.thresholds[product.name])
        return int(self.default_threshold)

    def set_threshold(self, name: str, threshold: int) -> None:
        if threshold < 0:
            raise ValueError("threshold must be zero or more")
        self.thresholds = {**self.thresholds, name: threshold}

    def _today(self, now: datetime | None) -> date:
        moment = now or self.clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(ZoneInfo(self.tz)).date()

    def evaluate(self, products: Iterable[Any]) -> list[LowStockAlert]:
        """List every product at or below its threshold; sends nothing."""

        alerts = []
        for product in products:
            threshold = self.threshold_for(product)
            if threshold > 0 and int(product.current_stock) <= threshold:
                alerts.append(
                    LowStockAlert(
                        product_id=product.id,
                        name=product.name,
                        current_stock=int(product.current_stock),
                        threshold=threshold,
                    )
                )
        return alerts

    def check(self, products: Iterable[Any], now: datetime | None = None) -> list[LowStockAlert]:
        """Send alerts for low products, at most ``max_alerts_per_day`` each per day."""

        today = self._today(now)
        sent = []
        for alert in self.evaluate(products):
            history = self._history.get(alert.product_id)
            if history is None or history.day != today:
                history = _History(day=today)
                self._history[alert.product_id] = history
            if history.count >= self.max_alerts_per_day:
                continue
            try:
                self.sink(alert)
            except Exception:
                # The triggering sale is already committed.
                logger.exception("inventory.low_stock.sink_failed", extra={"extra_data": {"product_id": alert.product_id}})
                continue
            history.count += 1
            sent.append(alert)
        return sent

    def sent_today(self, product_id: str, now: datetime | None = None) -> int:
        history = self._history.get(product_id)
        if history is None or history.day != self._today(now):
            return 0
        return history.count


__all__ = ["LowStockAlert", "LowStockMonitor", "log_sink"]
