from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.purchase import PurchaseCreate, PurchaseOut
from ..services.ledger import list_purchases, record_purchase
from ..services.windows import resolve_window

router = APIRouter(prefix="/api/v1/purchases", tags=["purchases"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[PurchaseOut])
def api_list_purchases(
    product_id: str | None = None,
    window: str = "all",
    start: date | None = None,
    end: date | None = None,
    limit: int = 200,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_purchases(
        db,
        product_id=product_id,
        window=resolve_window(window, start=start, end=end),
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=PurchaseOut, status_code=201)
def api_record_purchase(payload: PurchaseCreate, db: Session = Depends(get_db)):
    return record_purchase(
        db,
        product_id=payload.product_id,
        batches_purchased=payload.batches_purchased,
        cost_per_batch=payload.cost_per_batch,
        purchase_date=payload.purchase_date,
        notes=payload.notes,
    )
