from typing import Optional
import logging

from fastapi import APIRouter, Request, Depends, Body
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from database.connection import get_db
from app.services.billing_service import BillingService, WebhookSignatureError

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)
logger = logging.getLogger(__name__)


class CheckoutSessionIn(BaseModel):
    priceId: Optional[str] = None
    userId: Optional[str] = None
    userEmail: Optional[str] = None
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    return BillingService(db)


@router.post("/create-checkout-session")
@limiter.limit("30/minute")
async def create_checkout_session(
    request: Request,
    data: CheckoutSessionIn = Body(...),
    billing: BillingService = Depends(get_billing_service),
):
    if not data.priceId or not data.userId or not data.userEmail:
        return JSONResponse({"message": "Faltan datos requeridos"}, status_code=400)

    try:
        session_id = await billing.create_checkout_session(
            data.priceId, data.userId, data.userEmail,
            success_url=data.successUrl, cancel_url=data.cancelUrl,
        )
    except Exception:
        logger.exception("❌ Error al crear la sesión de checkout | user=%s", data.userId)
        return JSONResponse({"message": "Error al crear la sesión de checkout"}, status_code=500)

    return JSONResponse({"sessionId": session_id})


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = billing.parse_event(payload, signature)
    except WebhookSignatureError as e:
        logger.info("❌ Firma de Stripe inválida: %s", e)
        return JSONResponse({"message": "Error al verificar la firma del webhook"}, status_code=400)

    try:
        await billing.handle_event(event)
    except Exception:
        logger.exception("❌ Error al procesar el webhook de Stripe | type=%s", event.get("type"))
        return JSONResponse({"message": "Error al procesar el webhook de Stripe"}, status_code=500)

    return JSONResponse({"received": True})
