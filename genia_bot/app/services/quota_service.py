"""
📊 SERVICIO DE CUOTAS POR PLAN
==============================

Controla cuántas acciones puede realizar un usuario en una ventana
móvil de 30 días según su plan de suscripción.

📋 TABLA DE LÍMITES (mensajes por 30 días):
- free:        10
- basic:       100
- pro:         500
- enterprise:  999999 (prácticamente ilimitado)
- desconocido: 5

La tabla es la única fuente de verdad: la usan la verificación de cuota,
el aviso de límite excedido y el endpoint de uso.

🔄 ALGORITMO:
1. Contar filas de user_actions del usuario/tipo con created_at >= now - 30 días
2. Buscar el límite del plan (desconocido → 5)
3. allowed = used < limit

⚠️ CONCURRENCIA:
La verificación es leer-y-decidir. Quien llama debe serializar por
usuario la secuencia verificar → procesar → registrar acción
(ver CacheService.user_lock) para que dos mensajes simultáneos no
superen el límite.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Union

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.models.user import PlanTier
from app.models.user_action import UserAction

logger = logging.getLogger(__name__)

QUOTA_WINDOW = timedelta(days=30)
UNLIMITED_ALLOWANCE = 999_999

PLAN_LIMITS: Mapping[PlanTier, int] = MappingProxyType({
    PlanTier.FREE: 10,
    PlanTier.BASIC: 100,
    PlanTier.PRO: 500,
    PlanTier.ENTERPRISE: UNLIMITED_ALLOWANCE,
    PlanTier.UNKNOWN: 5,
})

# (user_id, action_type, since) -> número de acciones
ActionCounter = Callable[[str, str, datetime], int]


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    used: int
    limit: int


def sql_action_counter(db: Session) -> ActionCounter:
    """Cuenta filas crudas de user_actions; no hay contadores pre-agregados."""

    def _count(user_id: str, action_type: str, since: datetime) -> int:
        stmt = (
            select(func.count(UserAction.id))
            .where(UserAction.user_id == user_id)
            .where(UserAction.action_type == action_type)
            .where(UserAction.created_at >= since)
        )
        return int(db.execute(stmt).scalar_one() or 0)

    return _count


class QuotaEnforcer:
    def __init__(
        self,
        count_actions: ActionCounter,
        limits: Mapping[PlanTier, int] = PLAN_LIMITS,
        window: timedelta = QUOTA_WINDOW,
    ):
        self.count_actions = count_actions
        self.limits = limits
        self.window = window

    @classmethod
    def for_session(cls, db: Session) -> "QuotaEnforcer":
        return cls(sql_action_counter(db))

    def limit_for(self, plan_tier: Union[PlanTier, str, None]) -> int:
        tier = PlanTier.parse(plan_tier)
        return self.limits.get(tier, self.limits[PlanTier.UNKNOWN])

    def check_quota(
        self,
        user_id: str,
        action_type: str,
        plan_tier: Union[PlanTier, str, None],
        now: Optional[datetime] = None,
    ) -> QuotaStatus:
        now = now or datetime.now(timezone.utc)
        used = max(self.count_actions(user_id, action_type, now - self.window), 0)
        limit = self.limit_for(plan_tier)
        status = QuotaStatus(allowed=used < limit, used=used, limit=limit)
        logger.debug(
            "Cuota user=%s action=%s plan=%s used=%s limit=%s allowed=%s",
            user_id, action_type, plan_tier, used, limit, status.allowed,
        )
        return status
