"""
Decorador para manejo automático de transacciones en servicios con `self.db`.

Hace commit al terminar el método y rollback si lanza; la excepción
siempre se re-lanza para que la capa HTTP la convierta en un 500.
"""
import logging
from functools import wraps
from typing import Callable, Any

logger = logging.getLogger(__name__)


def transactional(func: Callable) -> Callable:
    """
    Usage:
        @transactional
        def record_action(self, ...):
            self.db.add(...)
            return row  # commit automático
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs) -> Any:
        try:
            result = func(self, *args, **kwargs)
            self.db.commit()
            return result
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error en {func.__name__}: {e}")
            raise

    return wrapper
