# app/api/routers/orders.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_order_service
from app.domain.errors import ShopError
from app.domain.schemas import (
    OrderCreate,
    OrderOut,
    OrdersPage,
    OrderStatsOut,
    OrderStatusUpdate,
)
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
def create_order(payload: OrderCreate, svc: OrderService = Depends(get_order_service)):
    """
    Tworzy zamówienie z koszyka użytkownika.
    Powiadomienie wysyłane asynchronicznie (po commicie).
    """
    try:
        return svc.create_order_from_cart(payload.user_id, payload.shipping_address)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=OrdersPage)
def list_orders(
    user_id: int = Query(...),
    status: str | None = Query(None),
    page: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders(user_id, status=status, page=page, limit=limit)


# przed /{order_id}, inaczej "stats" trafia do parsowania UUID
@router.get("/stats", response_model=OrderStatsOut)
def order_stats(user_id: int = Query(...), svc: OrderService = Depends(get_order_service)):
    return svc.get_user_order_stats(user_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: UUID,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    """
    Pobiera szczegóły zamówienia.
    """
    try:
        return svc.get_order(order_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: UUID,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.cancel_order(order_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    svc: OrderService = Depends(get_order_service),
):
    # admin - bez sprawdzania wlasciciela
    try:
        return svc.update_status(order_id, payload.status)
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
