"""
🗄️ CONEXIÓN A BASE DE DATOS - CONFIGURACIÓN SQLALCHEMY
======================================================

Configura el engine de SQLAlchemy, la fábrica de sesiones y la base
declarativa de los modelos.

🏗️ CONFIGURACIÓN DEL POOL (PostgreSQL):
- Pool permanente: 10 conexiones activas
- Overflow: 20 conexiones adicionales bajo demanda
- Pre-ping y recycle cada hora

🔧 SQLite:
- Soportado para desarrollo y tests (sin QueuePool)

📝 USO CON FASTAPI:
    from database.connection import get_db

    @router.post("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool

from config.settings import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """Crea el engine adaptando el pooling al tipo de base de datos."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=10,                    # Conexiones permanentes en el pool
        max_overflow=20,                 # Conexiones extra cuando el pool está lleno
        pool_pre_ping=True,              # Verificar conexiones antes de usar
        pool_recycle=3600,               # Reciclar conexiones cada hora
        echo=False,
        connect_args={"connect_timeout": 10},
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependencia para obtener sesión de BD
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
