"""Read-only view of the equipment directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import EquipmentTable


@dataclass(slots=True, frozen=True)
class Equipment:
    """Equipment snapshot used for grouping and line items."""

    id: str
    name: str
    tag: str = ""
    serial_number: str = ""
    location_id: str | None = None
    site: str = ""
    area: str = ""


class EquipmentDirectory(Protocol):
    async def get_many(self, equipment_ids: Sequence[str]) -> Mapping[str, Equipment]:
        ...


class EquipmentRepository:
    """Look up equipment rows by identifier."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_many(self, equipment_ids: Sequence[str]) -> Mapping[str, Equipment]:
        if not equipment_ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                select(EquipmentTable).where(EquipmentTable.id.in_(list(set(equipment_ids))))
            )
            rows = result.scalars().all()
        return {row.id: self._table_to_equipment(row) for row in rows}

    @staticmethod
    def _table_to_equipment(row: EquipmentTable) -> Equipment:
        return Equipment(
            id=row.id,
            name=row.name,
            tag=row.tag or "",
            serial_number=row.serial_number or "",
            location_id=row.location_id,
            site=row.site or "",
            area=row.area or "",
        )


def resolve_in_order(equipment_ids: Sequence[str], found: Mapping[str, Equipment]) -> list[Equipment]:
    """Keep selection order, drop unknown ids and collapse duplicates to the first occurrence."""

    seen: set[str] = set()
    resolved: list[Equipment] = []
    for equipment_id in equipment_ids:
        if equipment_id in seen:
            continue
        seen.add(equipment_id)
        equipment = found.get(equipment_id)
        if equipment is not None:
            resolved.append(equipment)
    return resolved
