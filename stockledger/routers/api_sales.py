from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..deps.monitor import get_low_stock_monitor
from ..schemas.sale import SaleCreate, SaleOut, SaleUpdate
from ..services.alerts import LowStockMonitor
from ..services.ledger import (
    delete_sale,
    get_sale,
    list_sales,
    record_sale,
    update_sale_notes,
)
from ..services.windows import resolve_window

router = APIRouter(prefix="/api/v1", tags=["sales"], dependencies=[Depends(require_api_key)])


def _sale_or_404(db: Session, sale_id: str):
    sale = get_sale(db, sale_id)
    if not sale:
        raise HTTPException(404, "Sale not found")
    return sale


@router.get("/sales", response_model=list[SaleOut])
def api_list_sales(
    window: str = "all",
    start: date | None = None,
    end: date | None = None,
    limit: int = 200,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_sales(db, window=resolve_window(window, start=start, end=end), limit=limit, offset=offset)


@router.post("/sales", response_model=SaleOut, status_code=201)
def api_record_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    monitor: LowStockMonitor = Depends(get_low_stock_monitor),
):
    sale = record_sale(
        db,
        [line.model_dump() for line in payload.items],
        sale_date=payload.sale_date,
        notes=payload.notes,
    )
    monitor.check({item.product_id: item.product for item in sale.items}.values())
    return sale


@router.get("/sales/{sale_id}", response_model=SaleOut)
def api_get_sale(sale_id: str, db: Session = Depends(get_db)):
    return _sale_or_404(db, sale_id)


@router.patch("/sales/{sale_id}", response_model=SaleOut)
def api_update_sale(sale_id: str, payload: SaleUpdate, db: Session = Depends(get_db)):
    sale = _sale_or_404(db, sale_id)
    data = payload.model_dump(exclude_unset=True)
    if "notes" not in data:
        return sale
    return update_sale_notes(db, sale, data["notes"])


@router.delete("/sales/{sale_id}")
def api_delete_sale(sale_id: str, db: Session = Depends(get_db)):
    sale = _sale_or_404(db, sale_id)
    delete_sale(db, sale)
    return {"status": "deleted"}


