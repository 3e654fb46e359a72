from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index

from database.connection import Base

# Tipos de acción contabilizados
ACTION_WHATSAPP_MESSAGE = "whatsapp_message"
ACTION_MESSAGE_SENT = "message_sent"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserAction(Base):
    """Registro de una acción que consume cuota. Nunca se actualiza ni se borra."""

    __tablename__ = "user_actions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type = Column(String(50), nullable=False)
    clone_type = Column(String(20), nullable=True)
    details = Column(JSON, nullable=True)
    # Se fija desde Python en UTC para que la ventana de 30 días sea comparable en cualquier motor
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_actions_user_type_created", "user_id", "action_type", "created_at"),
    )

    def __repr__(self):
        return f"<UserAction(user_id={self.user_id}, type='{self.action_type}', clone='{self.clone_type}')>"
