# oitrack/database.py
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from oitrack.config import settings

db_url = settings.effective_database_url

engine_kwargs = {"echo": settings.DB_ECHO}
if db_url.startswith("sqlite"):
    # one shared connection so an in-memory database survives across sessions
    engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)

engine = create_async_engine(db_url, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
Base = declarative_base()

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
