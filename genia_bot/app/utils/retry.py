import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.4,
    exc: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Reintenta await fn() hasta `attempts` veces con backoff exponencial
    (base, 2*base, 4*base, ...). Solo reintenta las excepciones de `exc`;
    el último error se re-lanza.
    """
    for i in range(attempts):
        try:
            return await fn()
        except exc as e:
            if i == attempts - 1:
                raise
            delay = base_delay * (2 ** i)
            logger.warning("Intento %s/%s falló (%s); reintento en %.1fs", i + 1, attempts, e, delay)
            await asyncio.sleep(delay)
    raise RuntimeError("retry_async requiere attempts >= 1")
