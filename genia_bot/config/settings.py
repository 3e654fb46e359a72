"""
⚙️ CONFIGURACIÓN GLOBAL DE GENIA
================================

Centraliza la configuración del servicio, cargando variables de entorno
(desde un archivo .env si existe) con valores por defecto seguros para
desarrollo.

🏗️ CATEGORÍAS DE CONFIGURACIÓN:

📊 BASE DE DATOS:
- DATABASE_URL: PostgreSQL en producción, SQLite para desarrollo/tests

🔗 REDIS:
- REDIS_URL / REDIS_ENABLED: locks por usuario para la cuota
- QUOTA_LOCK_TIMEOUT: segundos máximos que un lock puede quedar tomado
  (nunca menor que el peor caso de respuesta de OpenAI + margen de envío)

📱 TWILIO (WhatsApp):
- Account SID, Auth Token y número de WhatsApp Business
- DISABLE_WEBHOOK_VALIDATION: desactiva la validación de firma (solo dev)

🤖 OPENAI:
- CLONE_AI_ENABLED: usa OpenAI para responder con los clones; si no, stub
- OPENAI_TIMEOUT: segundos por intento (3 intentos como máximo)

💳 STRIPE:
- STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET

🌐 URLS PÚBLICAS:
- APP_URL, REGISTER_URL, SUBSCRIPTION_URL (usadas en los mensajes al usuario)

📝 USO:
    from config.settings import settings
    print(settings.OPENAI_MODEL)  # "gpt-4o-mini"
"""

import os
from dotenv import load_dotenv

load_dotenv()  # Carga las variables de entorno desde un archivo .env


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./genia.db")

    # Redis (locks de cuota por usuario)
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_ENABLED = _flag("REDIS_ENABLED", "True")
    QUOTA_LOCK_TIMEOUT = int(os.getenv("QUOTA_LOCK_TIMEOUT", "90"))

    # Twilio
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER", "+14155238886")

    # OpenAI
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "20"))
    CLONE_AI_ENABLED = _flag("CLONE_AI_ENABLED", "False")

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

    # URLs públicas
    APP_URL = os.getenv("APP_URL", "http://localhost:3000")
    REGISTER_URL = os.getenv("REGISTER_URL", "https://genia.app/register")
    SUBSCRIPTION_URL = os.getenv("SUBSCRIPTION_URL", "https://genia.app/subscription")

    # App
    DEBUG = _flag("DEBUG", "True")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DISABLE_WEBHOOK_VALIDATION = _flag("DISABLE_WEBHOOK_VALIDATION", "False")


settings = Settings()
