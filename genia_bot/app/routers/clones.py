"""
Entrada HTTP autenticada para hablar con los clones desde la web.

- Bearer token obligatorio (401 si falta o es inválido)
- Plan free: consume 1 crédito por mensaje (402 sin créditos)
- Cada mensaje registra una acción "message_sent"
"""
from typing import Optional
import logging

from fastapi import APIRouter, Request, HTTPException, Depends, Body
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database.connection import get_db
from app.models.user import User, PlanTier
from app.models.user_action import ACTION_MESSAGE_SENT, ACTION_WHATSAPP_MESSAGE
from app.services.classifier_service import default_classifier
from app.services.clone_service import CloneResponder, get_clone_responder
from app.services.history_service import HistoryService
from app.services.quota_service import QuotaEnforcer
from app.services.user_service import UserService

router = APIRouter()
logger = logging.getLogger(__name__)


class CloneMessageIn(BaseModel):
    message: Optional[str] = Field(None, max_length=4000)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    auth_header = request.headers.get("authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="No estás autenticado")
    user = UserService(db).get_user_by_token(auth_header.split(" ", 1)[1].strip())
    if user is None:
        raise HTTPException(status_code=401, detail="Token inválido o expirado")
    return user


@router.post("/clones/message")
async def clone_message(
    data: CloneMessageIn = Body(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    responder: CloneResponder = Depends(get_clone_responder),
):
    message = (data.message or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="El mensaje es requerido")

    is_free = user.plan_tier == PlanTier.FREE
    if is_free and (user.credits or 0) <= 0:
        raise HTTPException(status_code=402, detail="No tienes suficientes créditos para realizar esta acción")

    category = default_classifier.classify(message)
    try:
        text = await responder.respond(category, message)
    except Exception:
        logger.exception("❌ Error generando respuesta del clon | user=%s clone=%s", user.id, category.value)
        return JSONResponse({"error": "Error al procesar el mensaje"}, status_code=500)

    credits_remaining = None
    if is_free:
        credits_remaining = UserService(db).consume_credit(user.id)
        if credits_remaining is None:
            # Otro request gastó el último crédito mientras se generaba la respuesta
            raise HTTPException(status_code=402, detail="No tienes suficientes créditos para realizar esta acción")

    HistoryService(db).record_action(
        user.id, ACTION_MESSAGE_SENT, clone_type=category.value, details={"message": message},
    )
    logger.info("✅ Mensaje web | user=%s clone=%s", user.id, category.value)

    return {
        "success": True,
        "response": text,
        "clone_type": category.value,
        "credits_remaining": credits_remaining,
    }


@router.get("/usage")
async def usage(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    status = QuotaEnforcer.for_session(db).check_quota(user.id, ACTION_WHATSAPP_MESSAGE, user.plan_tier)
    return {
        "plan": user.plan_tier.value,
        "used": status.used,
        "limit": status.limit,
        "allowed": status.allowed,
    }
