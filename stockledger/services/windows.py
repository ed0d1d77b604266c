"""Report windows and timestamp normalisation.

Every timestamp the ledger stores is UTC text in one fixed shape,
``YYYY-MM-DDTHH:MM:SSZ``, so string order equals time order. A window is a
half-open range ``[start, end)`` whose edges are local midnights in the
configured zone, converted to that same shape. Sales and purchases are
filtered with exactly this rule, in SQL and in Python alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..core.config import settings
from ..core.errors import InvalidInputError

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
WINDOW_KINDS = ("all", "today", "yesterday", "custom")


def _zone(tz: str | None) -> ZoneInfo:
    return ZoneInfo(tz or settings.TZ)


def parse_iso(ts: str | datetime, tz: str | None = None) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as local to ``tz``."""

    if isinstance(ts, datetime):
        dt = ts
    else:
        if not ts or not str(ts).strip():
            raise InvalidInputError("timestamp is required")
        try:
            dt = datetime.fromisoformat(str(ts).strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(f"invalid timestamp: {ts!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(tz))
    return dt


def to_storage(ts: str | datetime, tz: str | None = None) -> str:
    """Normalise any accepted timestamp into the stored UTC text form."""

    return parse_iso(ts, tz).astimezone(timezone.utc).strftime(STORAGE_FORMAT)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime(STORAGE_FORMAT)


def _local_midnight(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open UTC range; ``None`` on either side means unbounded."""

    kind: str
    start: datetime | None = None
    end: datetime | None = None

    @property
    def start_key(self) -> str | None:
        return self.start.astimezone(timezone.utc).strftime(STORAGE_FORMAT) if self.start else None

    @property
    def end_key(self) -> str | None:
        return self.end.astimezone(timezone.utc).strftime(STORAGE_FORMAT) if self.end else None

    def contains(self, ts: str | datetime | None) -> bool:
        if ts is None:
            return False
        key = to_storage(ts)
        if self.start_key is not None and key < self.start_key:
            return False
        if self.end_key is not None and key >= self.end_key:
            return False
        return True

    def apply(self, stmt, column):
        """Add this window's bounds to a SQLAlchemy ``select`` on ``column``."""

        if self.start_key is not None:
            stmt = stmt.where(column >= self.start_key)
        if self.end_key is not None:
            stmt = stmt.where(column < self.end_key)
        return stmt

    def describe(self) -> dict[str, str | None]:
        return {"kind": self.kind, "start": self.start_key, "end": self.end_key}


ALL_TIME = TimeWindow(kind="all")


def day_window(day: date, *, kind: str = "custom", tz: str | None = None) -> TimeWindow:
    zone = _zone(tz)
    return TimeWindow(
        kind=kind,
        start=_local_midnight(day, zone),
        end=_local_midnight(day + timedelta(days=1), zone),
    )


def _parse_day(value: str | date | None, label: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise InvalidInputError(f"invalid {label} date: {value!r}") from exc


def resolve_window(
    kind: str | None = "all",
    *,
    start: str | date | None = None,
    end: str | date | None = None,
    now: datetime | None = None,
    tz: str | None = None,
) -> TimeWindow:
    """Turn a window name (plus optional inclusive dates) into a ``TimeWindow``.

    ``today`` and ``yesterday`` are relative to ``now`` (current time when not
    given), read in the configured zone.
    """

    name = (kind or "all").strip().lower()
    if name not in WINDOW_KINDS:
        raise InvalidInputError(f"unknown window {kind!r}; expected one of {', '.join(WINDOW_KINDS)}")
    zone = _zone(tz)
    if name == "all":
        return ALL_TIME

    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone)
    local_today = moment.astimezone(zone).date()
    if name == "today":
        return day_window(local_today, kind="today", tz=tz)
    if name == "yesterday":
        return day_window(local_today - timedelta(days=1), kind="yesterday", tz=tz)

    first = _parse_day(start, "start")
    last = _parse_day(end, "end")
    if first is None and last is None:
        raise InvalidInputError("custom window needs a start and/or end date")
    if first and last and last < first:
        raise InvalidInputError("end date is before start date")
    return TimeWindow(
        kind="custom",
        start=_local_midnight(first, zone) if first else None,
        end=_local_midnight(last + timedelta(days=1), zone) if last else None,
    )


__all__ = [
    "ALL_TIME",
    "STORAGE_FORMAT",
    "TimeWindow",
    "WINDOW_KINDS",
    "day_window",
    "parse_iso",
    "resolve_window",
    "to_storage",
    "utcnow_iso",
]
