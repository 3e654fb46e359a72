from twilio.rest import Client
from twilio.request_validator import RequestValidator
from config.settings import settings
import anyio
from typing import Any, Dict, Mapping, Optional, Union
from starlette.datastructures import FormData
import logging

logger = logging.getLogger(__name__)


def _wa(n: str) -> str:
    return n if n.startswith("whatsapp:") else f"whatsapp:{n}"


class WhatsAppService:
    """Despacho de mensajes salientes por la API de Twilio."""

    def __init__(self, client: Optional[Client] = None, from_number: Optional[str] = None):
        self._client = client
        self.from_number = from_number or settings.TWILIO_WHATSAPP_NUMBER

    @property
    def client(self) -> Client:
        # Se crea al primer envío: sin credenciales falla dentro del request, no al inyectarlo
        if self._client is None:
            self._client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        return self._client

    async def send_message(self, to_number: str, body: str) -> Dict[str, str]:
        """Envía un texto y devuelve {"id": sid, "status": estado inicial de Twilio}."""
        def _send():
            msg = self.client.messages.create(
                from_=_wa(self.from_number),
                to=_wa(to_number),
                body=body,
            )
            return {"id": msg.sid, "status": msg.status or "queued"}
        return await anyio.to_thread.run_sync(_send)

    # ---------- Validación de firma ----------

    @staticmethod
    def validate_webhook(
        url: str,
        form: Union[FormData, Mapping[str, Any]],
        signature: str,
    ) -> bool:
        """
        Valida firmas Twilio para application/x-www-form-urlencoded
        usando el validador oficial (maneja orden/encoding).
        """
        if not settings.TWILIO_AUTH_TOKEN or not signature or not url:
            logger.debug(
                "Missing validation data (form) url=%s sig=%s token=%s",
                url, bool(signature), bool(settings.TWILIO_AUTH_TOKEN)
            )
            return False

        try:
            validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
            is_valid = validator.validate(url, dict(form), signature)
            logger.debug("Twilio form signature valid=%s url=%s", is_valid, url)
            return is_valid
        except Exception as e:
            logger.exception("Validation error (form): %s", e)
            return False


def get_whatsapp_service() -> WhatsAppService:
    return WhatsAppService()
