# tests/test_clone_service.py
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from app.services.classifier_service import CloneCategory
from app.services.clone_service import (
    CLONE_SYSTEM_PROMPTS,
    OpenAICloneResponder,
    StubCloneResponder,
    get_clone_responder,
    response_time_budget,
)
from config.settings import settings

pytestmark = pytest.mark.anyio


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_openai(*results):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(results))
    return client


async def test_stub_menciona_el_clon():
    text = await StubCloneResponder().respond(CloneCategory.FUNNEL, "embudo")
    assert text.startswith("[Clon funnel]")
    assert "especializado en funnel" in text


async def test_prompt_de_sistema_e_historial():
    responder = OpenAICloneResponder(fake_openai(), "gpt-4o-mini")
    history = [{"role": "user", "content": "antes"}, {"role": "assistant", "content": "ok"}]

    messages = responder.build_messages(CloneCategory.ADS, "nuevo anuncio", history)

    assert messages[0] == {"role": "system", "content": CLONE_SYSTEM_PROMPTS[CloneCategory.ADS]}
    assert messages[1:3] == history
    assert messages[-1] == {"role": "user", "content": "nuevo anuncio"}


async def test_todos_los_clones_tienen_prompt():
    assert set(CLONE_SYSTEM_PROMPTS) == set(CloneCategory)


async def test_reintenta_errores_de_conexion():
    err = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    client = fake_openai(err, completion("  Aquí tienes tu anuncio  "))

    text = await OpenAICloneResponder(client, "gpt-4o-mini").respond(CloneCategory.ADS, "anuncio")

    assert text == "Aquí tienes tu anuncio"
    assert client.chat.completions.create.await_count == 2


async def test_respuesta_vacia_es_error():
    responder = OpenAICloneResponder(fake_openai(completion("")), "gpt-4o-mini")

    with pytest.raises(RuntimeError):
        await responder.respond(CloneCategory.CEO, "estrategia")


async def test_seleccion_del_responder(monkeypatch):
    assert isinstance(get_clone_responder(), StubCloneResponder)

    monkeypatch.setattr(settings, "CLONE_AI_ENABLED", True)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    assert isinstance(get_clone_responder(), StubCloneResponder)

    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "OPENAI_TIMEOUT", 12.0)
    responder = get_clone_responder()
    assert isinstance(responder, OpenAICloneResponder)
    # timeout acotado por intento; los reintentos solo los hace retry_async
    assert responder.client.timeout == 12.0
    assert responder.client.max_retries == 0


async def test_presupuesto_de_respuesta():
    assert response_time_budget(20.0) == 61.5
    assert response_time_budget(10.0, attempts=1) == 10.0
