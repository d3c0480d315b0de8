"""Tenant isolation policy.

Every query touching school data goes through a TenantScope built from the
caller's school_id. Rows of other schools and soft-deleted rows never leave it.
"""

from typing import Any, Optional, Type

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import not_found


def live(model: Type[Any]):
    """Filter clause hiding soft-deleted rows, or None for hard-deleted models."""
    deleted_at = getattr(model, "deleted_at", None)
    if deleted_at is None:
        return None
    return deleted_at.is_(None)


class TenantScope:
    def __init__(self, school_id: int) -> None:
        self.school_id = school_id

    def where(self, model: Type[Any]) -> list:
        clauses = [model.school_id == self.school_id]
        live_clause = live(model)
        if live_clause is not None:
            clauses.append(live_clause)
        return clauses

    def select(self, model: Type[Any], *criteria) -> Select:
        return select(model).where(*self.where(model), *criteria)

    def count(self, model: Type[Any], *criteria) -> Select:
        return select(func.count(model.id)).where(*self.where(model), *criteria)

    async def get(self, db: AsyncSession, model: Type[Any], obj_id: int, *criteria) -> Optional[Any]:
        result = await db.execute(self.select(model, model.id == obj_id, *criteria))
        return result.scalar_one_or_none()

    async def get_or_404(
        self, db: AsyncSession, model: Type[Any], obj_id: int, message: str, *criteria
    ) -> Any:
        obj = await self.get(db, model, obj_id, *criteria)
        if obj is None:
            raise not_found(message)
        return obj

    async def all_exist(self, db: AsyncSession, model: Type[Any], ids, *criteria) -> bool:
        """True when every id resolves to a live row of this school matching criteria."""
        wanted = set(ids)
        if not wanted:
            return True
        result = await db.execute(
            select(model.id).where(*self.where(model), model.id.in_(wanted), *criteria)
        )
        return set(result.scalars().all()) == wanted
