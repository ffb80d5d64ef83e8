from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from carhub.config import settings

SQLALCHEMY_DATABASE_URL = settings.database_url

# --- Engine de Conexão ---
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    engine_kwargs = {
        # 'check_same_thread' é necessário apenas para SQLite
        "connect_args": {"check_same_thread": False},
    }
    if SQLALCHEMY_DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # Banco em memória: todas as sessões precisam da mesma conexão
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_kwargs)

# --- Fábrica de Sessões ---
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# --- Base Declarativa ---
Base = declarative_base()


def get_db():
    """Dependência do FastAPI: abre uma sessão por requisição e fecha no fim."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
