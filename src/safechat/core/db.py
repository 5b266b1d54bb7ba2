
"""Factory de sessão do SQLAlchemy 2."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

def create_session_factory(database_url: str):
    """Cria SessionFactory síncrona para SQLAlchemy 2.

    :param database_url: URL completa do banco (psycopg3 em produção, sqlite em dev/testes).
    :return: sessionmaker configurado.
    """
    kwargs = {"pool_pre_ping": True, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Banco em memória precisa de conexão única compartilhada entre threads
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
