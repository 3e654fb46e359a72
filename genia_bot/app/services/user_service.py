import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.auth_token import AuthToken, hash_token
from app.models.user import User, PlanTier
from app.utils.transaction_decorator import transactional

logger = logging.getLogger(__name__)


class UserService:
    """Lectura de usuarios, resolución de bearer tokens y débito de créditos."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_phone(self, phone_number: str) -> Optional[User]:
        if not phone_number:
            return None
        return self.db.execute(
            select(User).where(User.phone_number == phone_number)
        ).scalar_one_or_none()

    def get(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_token(self, token: str, now: Optional[datetime] = None) -> Optional[User]:
        if not token:
            return None
        row = self.db.get(AuthToken, hash_token(token))
        if row is None:
            return None
        if row.expires_at is not None:
            now = now or datetime.now(timezone.utc)
            expires = row.expires_at
            if expires.tzinfo is None:
                # SQLite devuelve datetimes naive; se guardan en UTC
                expires = expires.replace(tzinfo=timezone.utc)
            if expires <= now:
                logger.info("Token expirado para user=%s", row.user_id)
                return None
        return row.user

    @transactional
    def issue_token(self, user_id: str, token: str, expires_at: Optional[datetime] = None) -> AuthToken:
        row = AuthToken(token_hash=hash_token(token), user_id=user_id, expires_at=expires_at)
        self.db.add(row)
        return row

    @transactional
    def consume_credit(self, user_id: str) -> Optional[int]:
        """
        Descuenta 1 crédito de forma atómica (UPDATE condicional).
        Devuelve el saldo restante, o None si no había créditos.
        """
        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.credits > 0)
            .values(credits=User.credits - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        user = self.db.get(User, user_id)
        self.db.refresh(user)
        return user.credits

    @transactional
    def set_plan(self, user_id: str, plan: PlanTier) -> bool:
        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(plan=plan.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("No existe el usuario %s para actualizar plan", user_id)
            return False
        return True
