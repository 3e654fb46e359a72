"""
📥 INBOUND SERVICE - ORQUESTACIÓN DE MENSAJES ENTRANTES
======================================================

Procesa un mensaje entrante de WhatsApp de principio a fin.

🔄 FLUJO (estados terminales, sin reintentos):
1. RECEIVED → se registra el mensaje entrante
2. Remitente desconocido → mensaje de bienvenida → DONE(welcome_sent)
3. Remitente conocido → verificación de cuota (bajo lock por usuario)
4. Cuota agotada → aviso de límite → DONE(limit_exceeded)
5. Si no → clasificar → generar respuesta → enviar → registrar saliente
   y una acción de uso → DONE(processed)

✅ INVARIANTE:
Cada rama envía exactamente UN mensaje saliente. Solo la rama
"processed" agrega una acción de uso.

🛡️ ERRORES:
Fallos de BD, Twilio u OpenAI se propagan al router (→ 500).
Lo ya registrado no se revierte.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from app.models.user import User
from app.models.user_action import ACTION_WHATSAPP_MESSAGE
from app.services.cache_service import CacheService, cache_service
from app.services.classifier_service import CloneClassifier, default_classifier
from app.services.clone_service import CloneResponder
from app.services.history_service import HistoryService
from app.services.quota_service import QuotaEnforcer
from app.services.user_service import UserService
from app.services.whatsapp_service import WhatsAppService

logger = logging.getLogger(__name__)

WELCOME_SENT = "welcome_sent"
LIMIT_EXCEEDED = "limit_exceeded"
PROCESSED = "processed"


def welcome_message() -> str:
    return (
        "¡Hola! Gracias por contactar a Genia. "
        "Para utilizar nuestros servicios, necesitas registrarte en nuestra plataforma: "
        f"{settings.REGISTER_URL}\n\n"
        "Una vez registrado, podrás vincular este número de WhatsApp a tu cuenta "
        "y comenzar a utilizar nuestros clones de IA."
    )


def limit_exceeded_message(plan: str, limit: int) -> str:
    return (
        f"Has alcanzado el límite de {limit} mensajes para tu plan {plan} en los últimos 30 días. "
        "Para continuar utilizando nuestros servicios, considera actualizar tu plan: "
        f"{settings.SUBSCRIPTION_URL}"
    )


def mask_number(num: str) -> str:
    """Enmascara todos los dígitos menos los últimos 4."""
    if not num:
        return ""
    return ("•" * max(len(num) - 4, 0)) + num[-4:]


@dataclass
class InboundMessage:
    from_number: str
    to_number: str
    body: str
    message_sid: Optional[str] = None


@dataclass
class InboundResult:
    action: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Cuerpo JSON del webhook: `action` para bienvenida, `response` para el resto."""
        if self.action == WELCOME_SENT:
            return {"success": True, "action": self.action}
        return {"success": True, "response": {"status": self.action, **self.details}}


class InboundMessageService:
    def __init__(
        self,
        db: Session,
        whatsapp: WhatsAppService,
        responder: CloneResponder,
        classifier: CloneClassifier = default_classifier,
        enforcer: Optional[QuotaEnforcer] = None,
        locks: CacheService = cache_service,
    ):
        self.db = db
        self.whatsapp = whatsapp
        self.responder = responder
        self.classifier = classifier
        self.enforcer = enforcer or QuotaEnforcer.for_session(db)
        self.locks = locks
        self.users = UserService(db)
        self.history = HistoryService(db)

    async def _reply(self, msg: InboundMessage, body: str, clone_type: Optional[str] = None) -> Dict[str, str]:
        dispatch = await self.whatsapp.send_message(msg.from_number, body)
        self.history.log_outbound(
            from_number=msg.to_number or settings.TWILIO_WHATSAPP_NUMBER or "",
            to_number=msg.from_number,
            body=body,
            dispatch=dispatch,
            clone_type=clone_type,
        )
        return dispatch

    async def handle(self, msg: InboundMessage, now: Optional[datetime] = None) -> InboundResult:
        safe = mask_number(msg.from_number)
        inbound_row = self.history.log_inbound(msg.from_number, msg.to_number, msg.body, msg.message_sid)

        user = self.users.find_by_phone(msg.from_number)
        if user is None:
            logger.info("👋 Remitente no registrado | from=%s", safe)
            await self._reply(msg, welcome_message())
            return InboundResult(WELCOME_SENT)

        async with self.locks.user_lock(f"quota:{user.id}"):
            return await self._process_for_user(msg, user, inbound_row.id, now)

    async def _process_for_user(
        self, msg: InboundMessage, user: User, inbound_id: int, now: Optional[datetime]
    ) -> InboundResult:
        plan = user.plan_tier
        status = self.enforcer.check_quota(user.id, ACTION_WHATSAPP_MESSAGE, plan, now)

        if not status.allowed:
            # Al usuario se le muestra el plan tal como está guardado; el tier solo decide el límite
            shown_plan = user.plan or plan.value
            logger.info(
                "⛔ Límite alcanzado | user=%s plan=%s tier=%s used=%s limit=%s",
                user.id, shown_plan, plan.value, status.used, status.limit,
            )
            await self._reply(msg, limit_exceeded_message(shown_plan, status.limit))
            return InboundResult(LIMIT_EXCEEDED, {"plan": shown_plan, "limit": status.limit})

        category = self.classifier.classify(msg.body)
        history = self.history.recent_conversation(msg.from_number, before_id=inbound_id)
        text = await self.responder.respond(category, msg.body, history)

        await self._reply(msg, text, clone_type=category.value)
        self.history.record_action(user.id, ACTION_WHATSAPP_MESSAGE, clone_type=category.value)

        logger.info(
            "✅ Procesado | user=%s clone=%s used=%s/%s",
            user.id, category.value, status.used + 1, status.limit,
        )
        return InboundResult(PROCESSED, {"clone": category.value})
