from enum import Enum

from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint, Index
from sqlalchemy.sql import func

from database.connection import Base


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


# Historial de mensajes de WhatsApp (solo inserciones)
class WhatsAppMessage(Base):
    __tablename__ = "whatsapp_messages"

    id = Column(Integer, primary_key=True)
    message_sid = Column(Text, nullable=True)
    from_number = Column(String(20), nullable=False)
    to_number = Column(String(20), nullable=False)
    body = Column(Text, nullable=True)
    direction = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False)
    clone_type = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("direction IN ('inbound','outbound')", name="ck_whatsapp_messages_direction"),
        Index("ix_whatsapp_messages_from_created", "from_number", "created_at"),
        Index("ix_whatsapp_messages_to_created", "to_number", "created_at"),
    )

    def __repr__(self):
        return f"<WhatsAppMessage(id={self.id}, direction='{self.direction}', clone='{self.clone_type}')>"
