import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))  # Agregar ruta del proyecto

from database.connection import Base, SessionLocal, engine
from app.models import User, PlanTier


def init_database():
    """Crear todas las tablas en la base de datos"""
    Base.metadata.create_all(bind=engine)
    print("✅ Base de datos inicializada correctamente")


def populate_users():
    """Crear un usuario de ejemplo en plan free si la tabla está vacía"""
    db = SessionLocal()
    try:
        if db.query(User).first() is None:
            db.add(User(
                name="Usuario Demo",
                email="demo@genia.app",
                phone_number="+15551234567",
                plan=PlanTier.FREE.value,
                credits=10,
            ))
            db.commit()
            print("✅ Usuario de ejemplo creado")
        else:
            print("ℹ️ Ya existen usuarios en la base de datos")
    except Exception as e:
        db.rollback()
        print(f"❌ Error al poblar la tabla de usuarios: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_database()
    populate_users()
