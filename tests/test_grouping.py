from __future__ import annotations

import pytest

from conftest import FakeDirectory, make_equipment
from jobdesk.work_orders.grouping import (
    group_by_location,
    group_selection,
    location_key,
    merge_notes,
    normalize_text,
)


def test_location_key_prefers_structured_location():
    assert location_key(make_equipment("a", location_id="L1")) == "loc:L1"
    assert location_key(make_equipment("b", site=" Main  Campus", area="Boiler Room ")) == "Main Campus|||Boiler Room"


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  North\tWing \n") == "North Wing"
    assert normalize_text(None) == ""


def test_groups_follow_first_appearance_order():
    a = make_equipment("A", location_id="L1")
    b = make_equipment("B", location_id="L1")
    c = make_equipment("C", location_id="L2", site="Annex", area="Roof")

    groups = group_by_location([a, c, b])

    assert [group.key for group in groups] == ["loc:L1", "loc:L2"]
    assert groups[0].equipment_ids == ["A", "B"]
    assert groups[1].equipment_ids == ["C"]
    assert groups[1].label == "Annex → Roof"


def test_freeform_locations_group_on_site_and_area():
    a = make_equipment("A", site="Main Campus", area="Boiler Room")
    b = make_equipment("B", site="Main  Campus", area=" Boiler Room")
    c = make_equipment("C", site="Main Campus", area="Kitchen")

    groups = group_by_location([a, b, c])

    assert [group.equipment_ids for group in groups] == [["A", "B"], ["C"]]
    assert groups[0].location_id is None
    assert groups[0].relocation_notes == []


def test_duplicates_are_grouped_once():
    a = make_equipment("A", location_id="L1")

    groups = group_by_location([a, a, a])

    assert len(groups) == 1
    assert groups[0].equipment_ids == ["A"]


def test_relocated_equipment_gets_a_note():
    a = make_equipment("A", location_id="L1", site="Main Campus", area="Boiler Room")
    moved = make_equipment("B", location_id="L1", site="Main Campus", area="Mezzanine", name="Chiller", tag="CH-2")

    groups = group_by_location([a, moved])

    assert groups[0].relocation_notes == [
        "Relocation: Chiller (CH-2) recorded at Main Campus / Mezzanine"
    ]


def test_merge_notes_puts_user_notes_first():
    assert merge_notes("  Bring ladder ", ["Relocation: x"]) == "Bring ladder\nRelocation: x"
    assert merge_notes("", ["Relocation: x", "Relocation: y"]) == "Relocation: x\nRelocation: y"
    assert merge_notes(None, []) == ""


@pytest.mark.asyncio
async def test_group_selection_drops_unknown_equipment():
    directory = FakeDirectory(
        [
            make_equipment("A", location_id="L1"),
            make_equipment("B", location_id="L1"),
            make_equipment("C", location_id="L2"),
        ]
    )

    groups = await group_selection(["A", "ghost", "B", "C", "A"], directory)

    assert [group.equipment_ids for group in groups] == [["A", "B"], ["C"]]


@pytest.mark.asyncio
async def test_group_selection_with_no_known_equipment():
    assert await group_selection(["ghost"], FakeDirectory()) == []
