"""
💳 BILLING SERVICE - SUSCRIPCIONES CON STRIPE
=============================================

🎯 PROPÓSITO:
- Crear sesiones de Stripe Checkout en modo suscripción
- Procesar webhooks de Stripe y mantener el plan del usuario al día

📨 EVENTOS MANEJADOS:
- checkout.session.completed      → alta/actualización de suscripción + plan
- customer.subscription.updated   → actualización de suscripción + plan
- customer.subscription.deleted   → estado; si "canceled" el plan vuelve a free
- Cualquier otro                  → se registra en log y se ignora

🏷️ PLAN SEGÚN NOMBRE DEL PRODUCTO (en este orden):
- "básico" / "basic"            → basic
- "pro" / "profesional"         → pro
- "enterprise" / "empresarial"  → enterprise
- otro                          → free

Las llamadas al SDK de Stripe son síncronas; se ejecutan en un hilo
con anyio para no bloquear el event loop.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import anyio
import stripe
from sqlalchemy import select
from sqlalchemy.orm import Session

from config.settings import settings
from app.models.subscription import Subscription
from app.models.user import PlanTier
from app.services.user_service import UserService
from app.utils.transaction_decorator import transactional

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """Firma de webhook de Stripe ausente o inválida."""


def plan_from_product_name(name: Optional[str]) -> PlanTier:
    lowered = (name or "").lower()
    if "básico" in lowered or "basic" in lowered:
        return PlanTier.BASIC
    if "pro" in lowered or "profesional" in lowered:
        return PlanTier.PRO
    if "enterprise" in lowered or "empresarial" in lowered:
        return PlanTier.ENTERPRISE
    return PlanTier.FREE


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _ts(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def _period(subscription: Any, key: str) -> Optional[datetime]:
    """
    Inicio/fin del periodo. Desde la API 2025-03-31 viven en cada item de la
    suscripción; en versiones anteriores, en la suscripción misma.
    """
    items = _field(_field(subscription, "items"), "data") or []
    value = _field(items[0], key) if items else None
    return _ts(value or _field(subscription, key))


class BillingService:
    def __init__(self, db: Session, api_key: Optional[str] = None):
        self.db = db
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.users = UserService(db)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_checkout_session(
        self,
        price_id: str,
        user_id: str,
        user_email: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> str:
        success_url = success_url or f"{settings.APP_URL}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = cancel_url or f"{settings.APP_URL}/subscription/cancel"

        def _create():
            return stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                billing_address_collection="auto",
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=user_id,
                customer_email=user_email,
                metadata={"userId": user_id},
            )

        session = await anyio.to_thread.run_sync(_create)
        logger.info("Checkout creado | user=%s price=%s session=%s", user_id, price_id, session.id)
        return session.id

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def parse_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verifica la firma y devuelve el evento como dict plano."""
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not signature or not secret:
            raise WebhookSignatureError("Falta la firma de Stripe o el secreto del webhook")
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureError(str(e)) from e
        return json.loads(payload)

    async def handle_event(self, event: Dict[str, Any]) -> str:
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            await self._on_checkout_completed(obj)
        elif event_type == "customer.subscription.updated":
            await self._on_subscription_updated(obj)
        elif event_type == "customer.subscription.deleted":
            self._on_subscription_deleted(obj)
        else:
            logger.info("Evento de Stripe no manejado: %s", event_type)
        return event_type

    async def _plan_for_subscription(self, subscription: Any) -> Dict[str, Any]:
        price = subscription["items"]["data"][0]["price"]
        product_id = price["product"]
        if not isinstance(product_id, str):
            product_id = product_id["id"]
        product = await anyio.to_thread.run_sync(
            lambda: stripe.Product.retrieve(product_id, api_key=self.api_key)
        )
        return {
            "price_id": price["id"],
            "plan": plan_from_product_name(_field(product, "name")),
        }

    async def _on_checkout_completed(self, session: Dict[str, Any]) -> None:
        user_id = (session.get("metadata") or {}).get("userId")
        subscription_id = session.get("subscription")
        if not user_id or not subscription_id:
            logger.error("Falta userId o subscriptionId en la sesión de checkout")
            return

        subscription = await anyio.to_thread.run_sync(
            lambda: stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        )
        info = await self._plan_for_subscription(subscription)
        self._upsert_subscription(user_id, subscription_id, subscription, info)
        self.users.set_plan(user_id, info["plan"])

    async def _on_subscription_updated(self, subscription: Dict[str, Any]) -> None:
        row = self._find(subscription.get("id"))
        if row is None:
            logger.error("Suscripción %s no encontrada", subscription.get("id"))
            return
        info = await self._plan_for_subscription(subscription)
        self._upsert_subscription(row.user_id, row.stripe_subscription_id, subscription, info)
        self.users.set_plan(row.user_id, info["plan"])

    def _on_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        row = self._find(subscription.get("id"))
        if row is None:
            logger.error("Suscripción %s no encontrada", subscription.get("id"))
            return
        self._update_status(row, subscription)
        if subscription.get("status") == "canceled":
            self.users.set_plan(row.user_id, PlanTier.FREE)

    def _find(self, stripe_subscription_id: Optional[str]) -> Optional[Subscription]:
        if not stripe_subscription_id:
            return None
        return self.db.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        ).scalar_one_or_none()

    @transactional
    def _upsert_subscription(
        self, user_id: str, subscription_id: str, subscription: Any, info: Dict[str, Any]
    ) -> Subscription:
        row = self._find(subscription_id)
        if row is None:
            row = Subscription(user_id=user_id, stripe_subscription_id=subscription_id)
            self.db.add(row)
        row.stripe_customer_id = _field(subscription, "customer")
        row.stripe_price_id = info["price_id"]
        row.status = _field(subscription, "status") or "active"
        row.plan = info["plan"].value
        row.current_period_start = _period(subscription, "current_period_start")
        row.current_period_end = _period(subscription, "current_period_end")
        row.cancel_at_period_end = bool(_field(subscription, "cancel_at_period_end"))
        return row

    @transactional
    def _update_status(self, row: Subscription, subscription: Dict[str, Any]) -> Subscription:
        row.status = subscription.get("status") or row.status
        row.cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
        return row
