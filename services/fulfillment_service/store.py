"""Local order store used by submission and reconciliation."""

from typing import Optional, Protocol

from libs.common.datetime_utils import utc_now
from services.fulfillment_service.models import FulfillmentOrder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


class OrderStore(Protocol):
    async def get(self, order_id: str) -> Optional[FulfillmentOrder]: ...

    async def list_recent(self, limit: int) -> list[FulfillmentOrder]:
        """Newest first."""
        ...

    async def list_by_upstream_status(
        self, upstream_status: str, limit: Optional[int] = None
    ) -> list[FulfillmentOrder]: ...

    async def save(self, order: FulfillmentOrder) -> None: ...


class SqlOrderStore:
    """OrderStore over an AsyncSession. Each save commits on its own."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, order_id: str) -> Optional[FulfillmentOrder]:
        return await self.db.get(FulfillmentOrder, order_id)

    async def list_recent(self, limit: int) -> list[FulfillmentOrder]:
        result = await self.db.execute(
            select(FulfillmentOrder)
            .order_by(FulfillmentOrder.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_upstream_status(
        self, upstream_status: str, limit: Optional[int] = None
    ) -> list[FulfillmentOrder]:
        query = (
            select(FulfillmentOrder)
            .where(FulfillmentOrder.upstream_status == upstream_status)
            .order_by(FulfillmentOrder.created_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def save(self, order: FulfillmentOrder) -> None:
        order.updated_at = utc_now()
        self.db.add(order)
        await self.db.commit()
