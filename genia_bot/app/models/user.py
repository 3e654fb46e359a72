"""
👤 MODELO DE USUARIO
====================

Usuario de Genia identificado por su número de WhatsApp, con el plan de
suscripción que gobierna su cuota y su saldo de créditos.

🏷️ PLANES:
- FREE, BASIC, PRO, ENTERPRISE
- UNKNOWN: cualquier valor no reconocido (o vacío) leído de la BD
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func

from database.connection import Base


class PlanTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PlanTier":
        """Convierte un valor libre en un plan; lo no reconocido es UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone_number = Column(String(20), unique=True, nullable=False)  # unique ya crea índice
    plan = Column(String(20), nullable=False, default=PlanTier.FREE.value)
    credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_nonneg"),
    )

    @property
    def plan_tier(self) -> PlanTier:
        return PlanTier.parse(self.plan)

    def __repr__(self):
        return f"<User(id={self.id}, plan='{self.plan}', credits={self.credits})>"
