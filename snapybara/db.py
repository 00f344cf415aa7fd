# snapybara/db.py
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_SYNC_SCHEMES = (
    "postgresql+psycopg://",
    "postgresql+psycopg2://",
    "postgresql://",
    "postgres://",
)


def apply_asyncpg_scheme(database_url: str) -> str:
    for scheme in _SYNC_SCHEMES:
        if database_url.startswith(scheme):
            return database_url.replace(scheme, "postgresql+asyncpg://", 1)
    return database_url


def create_engine(database_url: str) -> AsyncEngine:
    url = make_url(apply_asyncpg_scheme(database_url))
    connect_args = {}

    if url.get_backend_name() == "postgresql" and url.get_driver_name() == "asyncpg":
        query = dict(url.query)
        if "sslmode" in query:
            # asyncpg takes the libpq sslmode values through the `ssl` argument
            connect_args["ssl"] = query.pop("sslmode")
        # asyncpg does not support channel_binding
        query.pop("channel_binding", None)
        url = url._replace(query=query)

    return create_async_engine(
        url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
