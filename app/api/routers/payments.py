# app/api/routers/payments.py
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_payment_service
from app.domain.errors import ShopError
from app.domain.schemas import PaymentIntentIn, PaymentIntentOut, WebhookAck
from app.services.payment_service import PaymentService
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-intent", response_model=PaymentIntentOut)
def create_payment_intent(payload: PaymentIntentIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.create_payment_intent(payload.user_id, payload.order_id, payload.currency)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


def process_webhook(svc: PaymentService, payload: bytes, signature: str | None) -> str:
    event = svc.construct_webhook_event(payload, signature)
    return svc.handle_webhook_event(event)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Webhook bramki platnosci. Podpis liczony z surowych bajtow body,
    dlatego nie parsujemy go przez model pydantic.
    Sama obsluga (db, redis) jest blokujaca - idzie do threadpoola.
    """
    payload = await request.body()

    try:
        result = await run_in_threadpool(process_webhook, svc, payload, stripe_signature)
    except ShopError as e:
        logger.warning(f"Webhook rejected: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return WebhookAck(result=result)
