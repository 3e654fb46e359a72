"""
🗄️ SERVICIO DE CACHÉ - GESTIÓN REDIS
====================================

Interfaz simplificada para Redis. Su uso principal es serializar por
usuario la secuencia verificar cuota → responder → registrar acción.

⚡ CARACTERÍSTICAS PRINCIPALES:
- Conexión asíncrona con redis-py (redis.asyncio)
- Lock distribuido por clave (SET NX + expiración) cuando Redis está disponible
- Fallback a asyncio.Lock en proceso cuando Redis no está disponible
- Manejo graceful de errores de conexión

🔒 user_lock():
- Con Redis: serializa entre procesos/workers
- Sin Redis: serializa solo dentro del proceso actual

📝 EJEMPLO DE USO:
    async with cache_service.user_lock(f"quota:{user.id}"):
        status = enforcer.check_quota(...)
        ...
"""

from __future__ import annotations

import asyncio
import logging
import math
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.exceptions import LockError, LockNotOwnedError

from config.settings import settings
from app.services.clone_service import response_time_budget

logger = logging.getLogger(__name__)


class CacheService:
    def __init__(self, url: Optional[str], lock_timeout: int = 30):
        self.url = url
        self.lock_timeout = lock_timeout
        self.redis: Optional[Redis] = None
        self._local_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def connect(self):
        if not self.url:
            logger.warning("Redis no disponible (sin URL)")
            return
        if self.redis is None:
            self.redis = Redis.from_url(self.url, decode_responses=True)
            try:
                await self.redis.ping()
                logger.info("Conectado a Redis")
            except Exception as e:
                logger.warning(f"No se pudo conectar a Redis: {e}")
                self.redis = None

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    def _local_lock(self, key: str) -> asyncio.Lock:
        lock = self._local_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._local_locks[key] = lock
        return lock

    @asynccontextmanager
    async def user_lock(self, key: str) -> AsyncIterator[None]:
        """Sección crítica por clave. Los errores de Redis al adquirir se propagan."""
        if self.redis is not None:
            lock = self.redis.lock(
                f"lock:{key}",
                timeout=self.lock_timeout,
                blocking_timeout=self.lock_timeout,
            )
            if not await lock.acquire():
                raise LockError(f"No se pudo tomar el lock {key} en {self.lock_timeout}s")
            try:
                yield
            finally:
                try:
                    await lock.release()
                except LockNotOwnedError:
                    # El TTL venció antes de terminar; el trabajo ya está hecho
                    logger.warning("⚠️ Lock %s expiró antes de liberarse (timeout=%ss)", key, self.lock_timeout)
            return

        local = self._local_lock(key)
        async with local:
            yield


# Margen para Twilio y la BD además del peor caso de OpenAI
DISPATCH_MARGIN = 15


def quota_lock_timeout() -> int:
    """TTL del lock de cuota: nunca menor que el trabajo que protege."""
    budget = response_time_budget(settings.OPENAI_TIMEOUT) + DISPATCH_MARGIN
    return max(settings.QUOTA_LOCK_TIMEOUT, math.ceil(budget))


cache_service = CacheService(
    settings.REDIS_URL if settings.REDIS_ENABLED else None,
    lock_timeout=quota_lock_timeout(),
)
