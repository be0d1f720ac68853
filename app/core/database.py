from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from app.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL, echo=settings.DB_ECHO, pool_pre_ping=True
)

# Keep loaded attributes usable after commit/rollback in async code
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)


# One session (one pooled connection) per request, released on every exit path
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Table metadata for the attendance schema lives here
class Base(DeclarativeBase):
    pass
