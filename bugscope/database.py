import ssl
from typing import Any, Dict, Tuple

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from .config import DATABASE_URL

_POSTGRES_BACKENDS = ("postgresql", "postgres")

# libpq options asyncpg does not accept as URL query params
_LIBPQ_ONLY_PARAMS = ("sslmode", "channel_binding")


def async_engine_url(raw_url: str) -> Tuple[URL, Dict[str, Any]]:
    """Return the async engine URL and connect_args for *raw_url*.

    Postgres URLs are pointed at asyncpg, and ``sslmode=require`` becomes an
    SSL context in connect_args. Other backends pass through untouched.
    """
    url = make_url(raw_url)
    if url.get_backend_name() not in _POSTGRES_BACKENDS:
        return url, {}

    sslmode = url.query.get("sslmode")
    if isinstance(sslmode, tuple):
        sslmode = sslmode[-1]

    url = url.set(drivername="postgresql+asyncpg").difference_update_query(
        _LIBPQ_ONLY_PARAMS
    )
    connect_args = {"ssl": ssl.create_default_context()} if sslmode == "require" else {}
    return url, connect_args


if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required.")

ENGINE_URL, connect_args = async_engine_url(DATABASE_URL)

engine = create_async_engine(
    ENGINE_URL, echo=False, pool_pre_ping=True, connect_args=connect_args
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
