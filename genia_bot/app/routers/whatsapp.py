from fastapi import APIRouter, Request, HTTPException, Form, Depends
from fastapi.responses import JSONResponse
from typing import Optional
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session
import logging

from config.settings import settings
from database.connection import get_db
from app.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from app.services.clone_service import CloneResponder, get_clone_responder
from app.services.inbound_service import InboundMessage, InboundMessageService, mask_number


router = APIRouter()
limiter = Limiter(key_func=get_remote_address)
logger = logging.getLogger(__name__)


def effective_url(request: Request) -> str:
    """Reconstruye la URL firmada por Twilio (respeta proxy y querystring)."""
    host = request.headers.get("x-forwarded-host") or request.url.hostname
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    path = request.url.path
    query = f"?{request.url.query}" if request.url.query else ""
    return f"{proto}://{host}{path}{query}"


def normalize_msisdn(n: Optional[str]) -> str:
    """
    Quita el prefijo de transporte ("whatsapp:") y espacios; asegura el "+".
    """
    n = (n or "").strip()
    if n.startswith("whatsapp:"):
        n = n[len("whatsapp:"):]
    n = n.replace(" ", "")
    if n and not n.startswith("+"):
        n = "+" + n
    return n


@router.post("/whatsapp")
@limiter.limit("200/minute")  # SlowAPI
async def whatsapp_webhook_form(
    request: Request,
    From: str = Form(""),
    To: str = Form(""),
    Body: str = Form(""),
    MessageSid: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    whatsapp: WhatsAppService = Depends(get_whatsapp_service),
    responder: CloneResponder = Depends(get_clone_responder),
):
    # ✅ Validación de firma usando FormData crudo
    if not settings.DISABLE_WEBHOOK_VALIDATION:
        form_data = await request.form()
        signature = request.headers.get("X-Twilio-Signature", "")
        url = effective_url(request)
        if not WhatsAppService.validate_webhook(url, form_data, signature):
            logger.info("❌ Twilio signature invalid url=%s sig_present=%s", url, bool(signature))
            raise HTTPException(status_code=403, detail="Invalid signature")

    from_number = normalize_msisdn(From)
    if not from_number:
        raise HTTPException(status_code=400, detail="Número inválido")

    msg = InboundMessage(
        from_number=from_number,
        to_number=normalize_msisdn(To),
        body=(Body or "").strip(),
        message_sid=MessageSid,
    )
    logger.info("📩 Mensaje recibido | from=%s | sid=%s", mask_number(from_number), MessageSid or "N/A")

    try:
        service = InboundMessageService(db, whatsapp, responder)
        result = await service.handle(msg)
    except Exception:
        logger.exception("❌ Error procesando webhook | from=%s | sid=%s", mask_number(from_number), MessageSid or "N/A")
        return JSONResponse({"success": False, "error": "Error al procesar webhook"}, status_code=500)

    return JSONResponse(result.to_payload())
