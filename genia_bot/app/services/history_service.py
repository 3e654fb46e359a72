"""
📜 HISTORIAL DE MENSAJES Y ACCIONES
===================================

Registro append-only de:
- Mensajes entrantes y salientes de WhatsApp (whatsapp_messages)
- Acciones que consumen cuota (user_actions)

Cada escritura se confirma de inmediato: si un envío posterior falla,
lo ya registrado NO se revierte.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from app.models.message import WhatsAppMessage, MessageDirection
from app.models.user_action import UserAction
from app.utils.transaction_decorator import transactional

logger = logging.getLogger(__name__)


class HistoryService:
    def __init__(self, db: Session):
        self.db = db

    @transactional
    def log_inbound(
        self,
        from_number: str,
        to_number: str,
        body: Optional[str],
        message_sid: Optional[str] = None,
    ) -> WhatsAppMessage:
        row = WhatsAppMessage(
            message_sid=message_sid,
            from_number=from_number,
            to_number=to_number,
            body=body,
            direction=MessageDirection.INBOUND.value,
            status="received",
        )
        self.db.add(row)
        return row

    @transactional
    def log_outbound(
        self,
        from_number: str,
        to_number: str,
        body: str,
        dispatch: Optional[Dict[str, str]] = None,
        clone_type: Optional[str] = None,
    ) -> WhatsAppMessage:
        dispatch = dispatch or {}
        row = WhatsAppMessage(
            message_sid=dispatch.get("id"),
            from_number=from_number,
            to_number=to_number,
            body=body,
            direction=MessageDirection.OUTBOUND.value,
            status=dispatch.get("status") or "sent",
            clone_type=clone_type,
        )
        self.db.add(row)
        return row

    @transactional
    def record_action(
        self,
        user_id: str,
        action_type: str,
        clone_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> UserAction:
        row = UserAction(
            user_id=user_id,
            action_type=action_type,
            clone_type=clone_type,
            details=details,
        )
        self.db.add(row)
        return row

    def recent_conversation(
        self, phone_number: str, limit: int = 10, before_id: Optional[int] = None
    ) -> List[Dict[str, str]]:
        """Últimos mensajes con un número, en orden cronológico y con roles de chat."""
        stmt = (
            select(WhatsAppMessage)
            .where(or_(
                WhatsAppMessage.from_number == phone_number,
                WhatsAppMessage.to_number == phone_number,
            ))
            .order_by(WhatsAppMessage.id.desc())
            .limit(limit)
        )
        if before_id is not None:
            stmt = stmt.where(WhatsAppMessage.id < before_id)
        rows = list(self.db.execute(stmt).scalars())
        rows.reverse()
        return [
            {
                "role": "user" if r.direction == MessageDirection.INBOUND.value else "assistant",
                "content": r.body or "",
            }
            for r in rows
        ]
