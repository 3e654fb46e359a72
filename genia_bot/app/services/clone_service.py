"""
🤖 CLONE SERVICE - RESPUESTAS DE LOS CLONES DE GENIA
====================================================

Genera el texto de respuesta del clon elegido por el clasificador.

📊 IMPLEMENTACIONES:
- StubCloneResponder: respuesta simulada (por defecto)
- OpenAICloneResponder: prompt de sistema por clon + historial reciente,
  con reintentos ante errores transitorios de OpenAI

⚙️ SELECCIÓN (get_clone_responder):
- CLONE_AI_ENABLED=true y OPENAI_API_KEY definida → OpenAI
- En cualquier otro caso → stub
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Protocol

from openai import AsyncOpenAI, APIConnectionError, APITimeoutError, RateLimitError

from config.settings import settings
from app.services.classifier_service import CloneCategory
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

CLONE_SYSTEM_PROMPTS: Mapping[CloneCategory, str] = MappingProxyType({
    CloneCategory.CONTENT: (
        "Eres GENIA Content, un asistente especializado en crear contenido para redes sociales "
        "y marketing digital. Ayudas a generar ideas creativas, textos persuasivos y estrategias "
        "de contenido efectivas."
    ),
    CloneCategory.ADS: (
        "Eres GENIA Ads, un asistente especializado en publicidad digital. Ayudas a crear anuncios "
        "efectivos, optimizar campañas y maximizar el retorno de inversión publicitaria."
    ),
    CloneCategory.CEO: (
        "Eres GENIA CEO, un asistente ejecutivo especializado en estrategia de negocio. Ayudas con "
        "decisiones estratégicas, análisis de mercado y planificación de crecimiento."
    ),
    CloneCategory.VOICE: (
        "Eres GENIA Voice, un asistente especializado en comunicación verbal. Ayudas a crear guiones "
        "para videos, podcasts, presentaciones y mensajes de voz."
    ),
    CloneCategory.FUNNEL: (
        "Eres GENIA Funnel, un asistente especializado en embudos de ventas. Ayudas a diseñar "
        "recorridos de cliente, secuencias de seguimiento y mejorar la conversión."
    ),
    CloneCategory.CALENDAR: (
        "Eres GENIA Calendar, un asistente especializado en gestión del tiempo. Ayudas a organizar "
        "agendas, priorizar tareas y planificar reuniones."
    ),
})

ChatHistory = List[Dict[str, str]]


class CloneResponder(Protocol):
    async def respond(self, category: CloneCategory, text: str, history: Optional[ChatHistory] = None) -> str:
        ...


class StubCloneResponder:
    async def respond(self, category: CloneCategory, text: str, history: Optional[ChatHistory] = None) -> str:
        name = category.value
        return (
            f"[Clon {name}] Gracias por tu mensaje. En una implementación completa, este mensaje "
            f"sería procesado por nuestro clon de IA especializado en {name}."
        )


OPENAI_ATTEMPTS = 3
OPENAI_BASE_DELAY = 0.5


def response_time_budget(timeout: float, attempts: int = OPENAI_ATTEMPTS, base_delay: float = OPENAI_BASE_DELAY) -> float:
    """Peor caso en segundos de OpenAICloneResponder.respond (intentos + esperas entre ellos)."""
    return attempts * timeout + sum(base_delay * (2 ** i) for i in range(attempts - 1))


class OpenAICloneResponder:
    def __init__(self, client: AsyncOpenAI, model: str, max_tokens: int = 1000, temperature: float = 0.7):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_messages(self, category: CloneCategory, text: str, history: Optional[ChatHistory]) -> ChatHistory:
        messages: ChatHistory = [{"role": "system", "content": CLONE_SYSTEM_PROMPTS[category]}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": text})
        return messages

    async def respond(self, category: CloneCategory, text: str, history: Optional[ChatHistory] = None) -> str:
        messages = self.build_messages(category, text, history)
        completion = await retry_async(
            lambda: self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            ),
            attempts=OPENAI_ATTEMPTS,
            base_delay=OPENAI_BASE_DELAY,
            exc=(APIConnectionError, APITimeoutError, RateLimitError),
        )
        content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise RuntimeError(f"OpenAI devolvió una respuesta vacía para el clon {category.value}")
        return content


def get_clone_responder() -> CloneResponder:
    if settings.CLONE_AI_ENABLED and settings.OPENAI_API_KEY:
        logger.info("Clones con OpenAI (%s)", settings.OPENAI_MODEL)
        # Los reintentos los hace retry_async; el SDK no reintenta por su cuenta
        client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=0,
        )
        return OpenAICloneResponder(client, settings.OPENAI_MODEL)
    return StubCloneResponder()
