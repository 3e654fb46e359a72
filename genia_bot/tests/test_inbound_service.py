# tests/test_inbound_service.py
import anyio
import pytest
from sqlalchemy import select, func
from unittest.mock import AsyncMock

from app.models import UserAction, WhatsAppMessage, ACTION_WHATSAPP_MESSAGE
from app.services.cache_service import CacheService
from app.services.clone_service import StubCloneResponder
from app.services.inbound_service import (
    InboundMessage,
    InboundMessageService,
    LIMIT_EXCEEDED,
    PROCESSED,
    WELCOME_SENT,
)

pytestmark = pytest.mark.anyio

GENIA = "+14155238886"


def count(db, model, *where):
    return db.execute(select(func.count()).select_from(model).where(*where)).scalar_one()


def outbound_rows(db):
    return list(db.execute(
        select(WhatsAppMessage).where(WhatsAppMessage.direction == "outbound").order_by(WhatsAppMessage.id)
    ).scalars())


@pytest.fixture
def service(db, fake_whatsapp, locks):
    return InboundMessageService(db, fake_whatsapp, StubCloneResponder(), locks=locks)


async def test_primer_mensaje_de_usuario_free_va_a_ads(db, service, fake_whatsapp, make_user):
    user = make_user(phone="+15551234567", plan="free")

    result = await service.handle(InboundMessage("+15551234567", GENIA, "Necesito un anuncio para mi negocio", "SM1"))

    assert result.action == PROCESSED
    assert result.details == {"clone": "ads"}
    assert len(fake_whatsapp.sent) == 1
    assert fake_whatsapp.sent[0][0] == "+15551234567"
    assert fake_whatsapp.sent[0][1].startswith("[Clon ads]")

    rows = outbound_rows(db)
    assert len(rows) == 1
    assert rows[0].clone_type == "ads"
    assert rows[0].from_number == GENIA
    assert rows[0].status == "queued"

    actions = list(db.execute(select(UserAction)).scalars())
    assert [(a.user_id, a.action_type, a.clone_type) for a in actions] == [(user.id, ACTION_WHATSAPP_MESSAGE, "ads")]


async def test_mensaje_entrante_se_registra(db, service, make_user):
    make_user()
    await service.handle(InboundMessage("+15551234567", GENIA, "hola", "SM42"))

    inbound = db.execute(select(WhatsAppMessage).where(WhatsAppMessage.direction == "inbound")).scalar_one()
    assert (inbound.message_sid, inbound.from_number, inbound.to_number, inbound.status) == (
        "SM42", "+15551234567", GENIA, "received",
    )


async def test_numero_desconocido_recibe_bienvenida(db, service, fake_whatsapp):
    result = await service.handle(InboundMessage("+15559999999", GENIA, "Necesito un anuncio"))

    assert result.action == WELCOME_SENT
    assert result.to_payload() == {"success": True, "action": "welcome_sent"}
    assert len(fake_whatsapp.sent) == 1
    assert "https://genia.app/register" in fake_whatsapp.sent[0][1]
    assert count(db, UserAction) == 0
    assert [r.clone_type for r in outbound_rows(db)] == [None]


async def test_usuario_free_en_el_limite_recibe_aviso(db, service, fake_whatsapp, make_user, add_actions):
    user = make_user(plan="free")
    add_actions(user, 10, days_ago=3)

    result = await service.handle(InboundMessage("+15551234567", GENIA, "Necesito un anuncio"))

    assert result.action == LIMIT_EXCEEDED
    assert result.to_payload() == {
        "success": True,
        "response": {"status": "limit_exceeded", "plan": "free", "limit": 10},
    }
    assert len(fake_whatsapp.sent) == 1
    assert "10 mensajes" in fake_whatsapp.sent[0][1]
    assert "https://genia.app/subscription" in fake_whatsapp.sent[0][1]
    assert count(db, UserAction) == 10


async def test_limite_menos_uno_procesa_y_luego_rechaza(db, service, fake_whatsapp, make_user, add_actions):
    user = make_user(plan="free")
    add_actions(user, 9)

    first = await service.handle(InboundMessage("+15551234567", GENIA, "agenda"))
    second = await service.handle(InboundMessage("+15551234567", GENIA, "agenda"))

    assert first.action == PROCESSED
    assert second.action == LIMIT_EXCEEDED
    assert count(db, UserAction, UserAction.user_id == user.id) == 10
    assert len(fake_whatsapp.sent) == 2


async def test_acciones_antiguas_no_cuentan(service, make_user, add_actions):
    user = make_user(plan="free")
    add_actions(user, 10, days_ago=31)

    result = await service.handle(InboundMessage("+15551234567", GENIA, "hola"))

    assert result.action == PROCESSED
    assert result.details == {"clone": "content"}


async def test_plan_desconocido_tiene_limite_5(service, fake_whatsapp, make_user, add_actions):
    user = make_user(plan="legacy")
    add_actions(user, 5)

    result = await service.handle(InboundMessage("+15551234567", GENIA, "hola"))

    assert result.action == LIMIT_EXCEEDED
    # el límite sale del tier unknown, pero al usuario se le muestra su plan guardado
    assert result.details == {"plan": "legacy", "limit": 5}
    assert "tu plan legacy" in fake_whatsapp.sent[0][1]
    assert "unknown" not in fake_whatsapp.sent[0][1]


async def test_fallo_de_envio_se_propaga_sin_registrar_accion(db, make_user, locks):
    make_user()
    whatsapp = AsyncMock()
    whatsapp.send_message.side_effect = RuntimeError("twilio caído")
    service = InboundMessageService(db, whatsapp, StubCloneResponder(), locks=locks)

    with pytest.raises(RuntimeError):
        await service.handle(InboundMessage("+15551234567", GENIA, "anuncio"))

    # el entrante ya registrado no se revierte
    assert count(db, WhatsAppMessage, WhatsAppMessage.direction == "inbound") == 1
    assert count(db, UserAction) == 0


async def test_historial_previo_se_pasa_al_clon(db, fake_whatsapp, make_user, locks):
    make_user()
    responder = AsyncMock()
    responder.respond.return_value = "respuesta"
    service = InboundMessageService(db, fake_whatsapp, responder, locks=locks)

    await service.handle(InboundMessage("+15551234567", GENIA, "primero"))
    await service.handle(InboundMessage("+15551234567", GENIA, "segundo"))

    _, text, history = responder.respond.await_args.args
    assert text == "segundo"
    assert history == [
        {"role": "user", "content": "primero"},
        {"role": "assistant", "content": "respuesta"},
    ]


async def test_mensajes_simultaneos_respetan_el_limite(db, make_user, add_actions, locks):
    """Con el lock por usuario, dos mensajes en vuelo no superan la cuota."""
    user = make_user(plan="free")
    add_actions(user, 9)

    class SlowWhatsApp:
        def __init__(self):
            self.sent = []

        async def send_message(self, to_number, body):
            await anyio.sleep(0.05)
            self.sent.append(body)
            return {"id": "SMX", "status": "queued"}

    whatsapp = SlowWhatsApp()
    service = InboundMessageService(db, whatsapp, StubCloneResponder(), locks=locks)
    results = []

    async def _send():
        results.append(await service.handle(InboundMessage("+15551234567", GENIA, "ventas")))

    async with anyio.create_task_group() as tg:
        tg.start_soon(_send)
        tg.start_soon(_send)

    assert sorted(r.action for r in results) == [LIMIT_EXCEEDED, PROCESSED]
    assert count(db, UserAction, UserAction.user_id == user.id) == 10
    assert len(whatsapp.sent) == 2


async def test_lock_redis_expirado_sigue_devolviendo_procesado(db, fake_whatsapp, make_user):
    from redis.exceptions import LockNotOwnedError

    class ExpiredLock:
        async def acquire(self):
            return True

        async def release(self):
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")

    class ExpiringRedis:
        def lock(self, name, timeout=None, blocking_timeout=None):
            return ExpiredLock()

    locks = CacheService(None, lock_timeout=1)
    locks.redis = ExpiringRedis()
    user = make_user()
    service = InboundMessageService(db, fake_whatsapp, StubCloneResponder(), locks=locks)

    result = await service.handle(InboundMessage("+15551234567", GENIA, "anuncio"))

    assert result.action == PROCESSED
    assert len(fake_whatsapp.sent) == 1
    assert count(db, UserAction, UserAction.user_id == user.id) == 1
