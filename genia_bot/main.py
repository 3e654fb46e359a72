import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from app.routers import whatsapp, billing, clones
from config.settings import settings
from app.services.cache_service import cache_service
from contextlib import asynccontextmanager

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Conectar a Redis al iniciar (locks de cuota por usuario)
    await cache_service.connect()
    yield
    # shutdown
    try:
        await cache_service.close()  # cierra conexión limpia
    except Exception:
        logging.getLogger(__name__).warning("Error cerrando Redis", exc_info=True)

# Configurar rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="Genia API",
    description="Webhook de WhatsApp, clones de IA y suscripciones de Genia",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

if settings.DEBUG:
    # En desarrollo, permitir todos los orígenes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.APP_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

# Incluir routers
app.include_router(whatsapp.router, prefix="/webhook", tags=["webhook"])
app.include_router(billing.router, prefix="/api", tags=["billing"])
app.include_router(clones.router, prefix="/api", tags=["clones"])


@app.get("/")
async def root():
    return {
        "message": "Genia API funcionando!",
        "docs": "/docs",
        "status": "activo"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "genia"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="debug" if settings.DEBUG else "info")
