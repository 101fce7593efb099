# apuracao/core/database.py

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from apuracao.core.config import settings


def build_engine(url: str, **kwargs) -> Engine:
    """
    Cria o engine conforme o banco.

    SQLite precisa de check_same_thread=False, já que o servidor atende
    requests em threads diferentes; nos demais, conexões são testadas
    antes do uso.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, **kwargs.pop("connect_args", {})}
        return create_engine(url, connect_args=connect_args, echo=False, **kwargs)

    return create_engine(url, echo=False, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependência usada pelos endpoints
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
