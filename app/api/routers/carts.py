# app/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import ShopError
from app.domain.schemas import CartOut, ItemIn
from app.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.get("/{user_id}", response_model=CartOut)
def get_cart(user_id: int, db: Session = Depends(get_db)):
    return CartService(db).get_cart(user_id)


@router.post("/{user_id}/items", response_model=CartOut)
def add_item(user_id: int, payload: ItemIn, db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return svc.add_product(
            user_id=user_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
        )
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{user_id}/items/{product_id}", response_model=CartOut)
def remove_item(user_id: int, product_id: int, db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return svc.remove_product(user_id, product_id)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
