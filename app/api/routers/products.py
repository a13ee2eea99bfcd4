# app/api/routers/products.py
from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_product_service
from app.domain.errors import ShopError
from app.domain.schemas import PriceChangeIn, ProductOut, RestockIn
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, svc: ProductService = Depends(get_product_service)):
    try:
        return svc.get_product(product_id)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{product_id}/price", response_model=ProductOut)
def change_price(
    product_id: int,
    payload: PriceChangeIn,
    svc: ProductService = Depends(get_product_service),
):
    try:
        return svc.change_price(product_id, payload.price)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{product_id}/restock", response_model=ProductOut)
def restock(
    product_id: int,
    payload: RestockIn,
    svc: ProductService = Depends(get_product_service),
):
    try:
        return svc.restock(product_id, payload.quantity)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
