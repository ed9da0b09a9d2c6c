"""SQL-backed usage store. Insert only."""

from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from creative_ai_system.models import UsageRecord

from .models import ApiUsageLog, Base
from .session import create_engine, create_session_factory

logger = structlog.get_logger(__name__)


class SqlUsageStore:
    """Writes usage records to the ``api_usage_logs`` table."""

    def __init__(self, engine: AsyncEngine, session_factory: Optional[async_sessionmaker] = None):
        self.engine = engine
        self.session_factory = session_factory or create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlUsageStore":
        return cls(create_engine(database_url, echo=echo))

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def append(self, record: UsageRecord) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(ApiUsageLog.from_record(record))

    async def recent(self, limit: int = 100, organization_id: Optional[str] = None) -> List[dict]:
        """Latest rows first, optionally for one organization."""
        query = select(ApiUsageLog).order_by(ApiUsageLog.created_at.desc()).limit(limit)
        if organization_id is not None:
            query = query.where(ApiUsageLog.organization_id == organization_id)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [row.to_dict() for row in result.scalars().all()]

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Usage database connection closed")
