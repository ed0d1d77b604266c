from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud.products import create_product, delete_product, get_product, list_products, update_product
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.metrics import ProductMetricsOut
from ..schemas.product import ProductCreate, ProductOut, ProductUpdate
from ..services.metrics import calculate_product_metrics
from ..services.windows import resolve_window

router = APIRouter(prefix="/api/v1/products", tags=["products"], dependencies=[Depends(require_api_key)])


def _product_or_404(db: Session, product_id: str):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.get("", response_model=list[ProductOut])
def api_list_products(limit: int = 200, offset: int = 0, db: Session = Depends(get_db)):
    return list_products(db, limit=limit, offset=offset)


@router.post("", response_model=ProductOut, status_code=201)
def api_create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return create_product(db, payload.model_dump())


@router.get("/{product_id}", response_model=ProductOut)
def api_get_product(product_id: str, db: Session = Depends(get_db)):
    return _product_or_404(db, product_id)


@router.patch("/{product_id}", response_model=ProductOut)
def api_update_product(product_id: str, payload: ProductUpdate, db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    return update_product(db, product, payload.model_dump(exclude_unset=True))


@router.delete("/{product_id}")
def api_delete_product(product_id: str, db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    delete_product(db, product)
    return {"status": "deleted"}


@router.get("/{product_id}/metrics", response_model=ProductMetricsOut)
def api_product_metrics(
    product_id: str,
    window: str = "all",
    start: date | None = None,
    end: date | None = None,
    db: Session = Depends(get_db),
):
    product = _product_or_404(db, product_id)
    return calculate_product_metrics(db, product, resolve_window(window, start=start, end=end))
