"""Partition an equipment selection into per-location groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from jobdesk.equipment import Equipment, EquipmentDirectory, resolve_in_order

KEY_SEPARATOR = "|||"
STRUCTURED_PREFIX = "loc:"


def normalize_text(value: str | None) -> str:
    return " ".join((value or "").split())


def location_key(equipment: Equipment) -> str:
    """``loc:<id>`` when a structured location exists, otherwise ``<site>|||<area>``."""

    if equipment.location_id:
        return f"{STRUCTURED_PREFIX}{equipment.location_id}"
    return f"{normalize_text(equipment.site)}{KEY_SEPARATOR}{normalize_text(equipment.area)}"


def relocation_note(equipment: Equipment) -> str:
    tag = equipment.tag or "no tag"
    return (
        f"Relocation: {equipment.name} ({tag}) recorded at "
        f"{normalize_text(equipment.site)} / {normalize_text(equipment.area)}"
    )


@dataclass(slots=True)
class LocationGroup:
    """Equipment sharing one location, in selection order."""

    key: str
    location_id: str | None
    site: str
    area: str
    items: list[Equipment] = field(default_factory=list)
    relocation_notes: list[str] = field(default_factory=list)

    @property
    def equipment_ids(self) -> list[str]:
        return [item.id for item in self.items]

    @property
    def label(self) -> str:
        return f"{self.site} → {self.area}"

    def add(self, equipment: Equipment) -> None:
        self.items.append(equipment)
        if self.location_id is None:
            return
        site = normalize_text(equipment.site)
        area = normalize_text(equipment.area)
        if (site, area) != (self.site, self.area):
            self.relocation_notes.append(relocation_note(equipment))


def group_by_location(equipment: Iterable[Equipment]) -> list[LocationGroup]:
    groups: dict[str, LocationGroup] = {}
    seen: set[str] = set()
    for item in equipment:
        if item.id in seen:
            continue
        seen.add(item.id)
        key = location_key(item)
        group = groups.get(key)
        if group is None:
            group = LocationGroup(
                key=key,
                location_id=item.location_id or None,
                site=normalize_text(item.site),
                area=normalize_text(item.area),
            )
            groups[key] = group
        group.add(item)
    return list(groups.values())


def merge_notes(user_notes: str | None, relocation_notes: Sequence[str]) -> str:
    """User notes first, then generated relocation notes, one per line."""

    parts: list[str] = []
    if user_notes and user_notes.strip():
        parts.append(user_notes.strip())
    parts.extend(relocation_notes)
    return "\n".join(parts)


async def group_selection(equipment_ids: Sequence[str], directory: EquipmentDirectory) -> list[LocationGroup]:
    found = await directory.get_many(equipment_ids)
    return group_by_location(resolve_in_order(equipment_ids, found))
