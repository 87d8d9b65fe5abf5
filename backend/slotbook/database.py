from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

settings = get_settings()

# Bookings must be read-committed at least so a committed reservation is
# visible to the next conflict check.
engine = create_async_engine(
    settings.database_url,
    echo=settings.echo_sql,
    pool_pre_ping=True,
    pool_recycle=3600,
    isolation_level="READ COMMITTED",
)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
