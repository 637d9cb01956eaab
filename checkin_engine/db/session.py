import logging
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from checkin_engine.core.config import settings

logger = logging.getLogger(__name__)

# Parameters asyncpg rejects when they arrive through the URL query string
UNSUPPORTED_ASYNCPG_PARAMS = ("server_settings", "passfile", "channel_binding", "gssencmode")


def normalize_database_url(url: str) -> str:
    """
    Map plain driver URLs onto their async drivers and strip query
    parameters asyncpg does not understand.
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    if not url.startswith("postgresql+asyncpg://"):
        return url

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query, keep_blank_values=True)
    modified = False

    if "connect_timeout" in query_params:
        query_params["command_timeout"] = query_params.pop("connect_timeout")
        modified = True
        logger.info("Replaced connect_timeout with command_timeout")

    for param in UNSUPPORTED_ASYNCPG_PARAMS:
        if param in query_params:
            del query_params[param]
            modified = True
            logger.info("Removed unsupported parameter: %s", param)

    if not modified:
        return url
    new_query = urlencode({key: values[0] for key, values in query_params.items()})
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment))


def build_engine(url: str | None = None) -> AsyncEngine:
    db_url = normalize_database_url(url or settings.DATABASE_URL)
    logger.info("Using database %s...", db_url.split("@")[-1][:50])
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=False)
    return create_async_engine(
        db_url,
        poolclass=NullPool,
        pool_pre_ping=True,
        echo=False,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


@retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, max=4),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def open_session(factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    """
    Open a session and check out its connection, retrying transient network errors.
    """
    session = factory()
    try:
        await session.connection()
    except BaseException:
        await session.close()
        raise
    return session


async def get_db():
    """
    Dependency that provides a database session.
    """
    session = await open_session(SessionLocal)
    try:
        yield session
    finally:
        await session.close()
