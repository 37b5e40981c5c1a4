from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base


def create_cache_engine(url: str, *, connect_timeout: float = 0.5, echo: bool = False) -> Engine:
    parsed = make_url(url)
    backend = parsed.get_backend_name()

    if backend == "sqlite":
        database = parsed.database
        if not database or database == ":memory:":
            return create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False, "timeout": connect_timeout})

    connect_args: dict[str, object] = {}
    if backend in {"postgresql", "mysql"}:
        connect_args["connect_timeout"] = max(1, int(round(connect_timeout)))
    return create_engine(url, echo=echo, pool_pre_ping=True, pool_timeout=connect_timeout, connect_args=connect_args)


def init_cache_db(engine: Engine) -> sessionmaker[Session]:
    Base.metadata.create_all(engine)
    return sessionmaker(engine)
