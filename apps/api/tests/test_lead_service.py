import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from models.base import parse_timestamp
from models.lead import LeadFormData
from services.leads import LEAD_COUNTER_KEY, LEADS_KEY, LeadService
from store import StoreError


def _form(name="Ada Lovelace", email="ada@example.com", **extra):
    return LeadFormData(name=name, email=email, source=extra.pop("source", "form"), **extra)


def _stored_lead(lead_id, created_at, **fields):
    record = {
        "id": lead_id,
        "name": fields.pop("name", lead_id),
        "email": fields.pop("email", f"{lead_id}@example.com"),
        "source": fields.pop("source", "form"),
        "status": fields.pop("status", "new"),
        "priority": fields.pop("priority", "medium"),
        "tags": fields.pop("tags", []),
        "createdAt": created_at,
        "notes": [],
        "customFields": {},
    }
    record.update(fields)
    return record


@pytest.mark.asyncio
async def test_create_lead_defaults_and_initial_note(lead_service):
    lead = await lead_service.create_lead(_form(message="Interested in a demo", company="Acme"))

    assert lead.id.startswith("lead_1_")
    assert lead.status == "new"
    assert lead.priority == "medium"
    assert lead.tags == []
    assert lead.custom_fields == {}
    assert len(lead.notes) == 1
    assert lead.notes[0].text == "Initial message: Interested in a demo"
    assert lead.notes[0].type == "note"
    assert await lead_service.get_lead_by_id(lead.id) == lead


@pytest.mark.asyncio
async def test_create_lead_without_message_has_no_notes(lead_service):
    lead = await lead_service.create_lead({"name": "Bob", "email": "bob@example.com", "source": "direct"})
    assert lead.notes == []
    assert lead.message is None


@pytest.mark.asyncio
async def test_lead_ids_use_increasing_counter(lead_service, store):
    first = await lead_service.create_lead(_form())
    second = await lead_service.create_lead(_form(name="Bob"))

    assert first.id.startswith("lead_1_")
    assert second.id.startswith("lead_2_")
    assert first.id != second.id
    assert store.data[LEAD_COUNTER_KEY] == "2"


@pytest.mark.asyncio
async def test_corrupt_counter_falls_back_to_timestamp(store):
    store.data[LEAD_COUNTER_KEY] = "not-a-number"
    lead = await LeadService(store).create_lead(_form())

    counter = int(lead.id.split("_")[1])
    assert counter > 1_000_000_000_000


@pytest.mark.asyncio
async def test_capture_video_lead(lead_service):
    lead = await lead_service.capture_video_lead("vid-9", "Ada", "ada@example.com", "Loved the video")

    assert lead.source == "video"
    assert lead.video_id == "vid-9"
    assert lead.notes[0].text == "Initial message: Loved the video"


@pytest.mark.asyncio
async def test_update_lead_is_a_shallow_merge(lead_service):
    lead = await lead_service.create_lead(_form(message="hello"))

    updated = await lead_service.update_lead(lead.id, {"priority": "high", "notes": []})

    assert updated.priority == "high"
    assert updated.notes == []
    assert updated.name == lead.name
    assert updated.created_at == lead.created_at
    assert await lead_service.update_lead("lead_missing", {"priority": "low"}) is None


@pytest.mark.asyncio
async def test_add_note_stamps_contact_for_contact_types(lead_service):
    lead = await lead_service.create_lead(_form())

    assert await lead_service.add_note_to_lead(lead.id, "Just a thought") is True
    assert (await lead_service.get_lead_by_id(lead.id)).last_contacted_at is None

    assert await lead_service.add_note_to_lead(lead.id, "Called", "call") is True
    refreshed = await lead_service.get_lead_by_id(lead.id)
    assert refreshed.last_contacted_at == refreshed.notes[-1].created_at
    assert [note.type for note in refreshed.notes] == ["note", "call"]

    assert await lead_service.add_note_to_lead("lead_missing", "x") is False


@pytest.mark.asyncio
async def test_contacted_status_stamps_last_contacted(lead_service):
    lead = await lead_service.create_lead(_form())

    assert await lead_service.change_lead_status(lead.id, "contacted") is True
    contacted = await lead_service.get_lead_by_id(lead.id)
    stamped = parse_timestamp(contacted.last_contacted_at)
    assert abs(datetime.now(timezone.utc) - stamped) < timedelta(seconds=5)

    assert await lead_service.change_lead_status(lead.id, "qualified") is True
    qualified = await lead_service.get_lead_by_id(lead.id)
    assert qualified.status == "qualified"
    assert qualified.last_contacted_at == contacted.last_contacted_at


@pytest.mark.asyncio
async def test_non_contact_status_leaves_last_contacted_unset(lead_service):
    lead = await lead_service.create_lead(_form())
    await lead_service.change_lead_status(lead.id, "lost")

    assert (await lead_service.get_lead_by_id(lead.id)).last_contacted_at is None
    assert await lead_service.change_lead_status("lead_missing", "lost") is False


@pytest.mark.asyncio
async def test_tags_are_case_folded_and_deduplicated(lead_service):
    lead = await lead_service.create_lead(_form())

    assert await lead_service.add_tags_to_lead(lead.id, ["VIP", "vip"]) is True
    assert await lead_service.add_tags_to_lead(lead.id, ["VIP", "vip"]) is True

    assert (await lead_service.get_lead_by_id(lead.id)).tags == ["vip"]
    assert await lead_service.add_tags_to_lead("lead_missing", ["x"]) is False


@pytest.mark.asyncio
async def test_filters_compose_and_sort_newest_first(store):
    store.data[LEADS_KEY] = json.dumps(
        [
            _stored_lead("l1", "2026-10-01T10:00:00.000Z", company="Acme Corp"),
            _stored_lead("l2", "2026-10-03T10:00:00.000Z", message="Referred by ACME"),
            _stored_lead("l3", "2026-10-02T10:00:00.000Z", company="Acme", status="qualified"),
            _stored_lead("l4", "2026-10-04T10:00:00.000Z", company="Globex"),
        ]
    )
    service = LeadService(store)

    matches = await service.filter_leads({"status": "new", "search": "acme"})
    assert [lead.id for lead in matches] == ["l2", "l1"]

    everything = await service.filter_leads()
    assert [lead.id for lead in everything] == ["l4", "l2", "l3", "l1"]


@pytest.mark.asyncio
async def test_filter_by_tags_priority_and_source(store):
    store.data[LEADS_KEY] = json.dumps(
        [
            _stored_lead("l1", "2026-10-01T10:00:00.000Z", tags=["vip"], priority="high"),
            _stored_lead("l2", "2026-10-02T10:00:00.000Z", tags=["cold"], source="video"),
            _stored_lead("l3", "2026-10-03T10:00:00.000Z", tags=["vip", "cold"], source="video"),
        ]
    )
    service = LeadService(store)

    assert [l.id for l in await service.filter_leads({"tags": ["VIP"]})] == ["l3", "l1"]
    assert [l.id for l in await service.filter_leads({"priority": "high"})] == ["l1"]
    assert [l.id for l in await service.filter_leads({"source": "video", "tags": ["cold"]})] == ["l3", "l2"]


@pytest.mark.asyncio
async def test_lead_stats(store):
    store.data[LEADS_KEY] = json.dumps(
        [
            _stored_lead("l1", "2026-10-01T10:00:00.000Z", status="converted", source="video"),
            _stored_lead("l2", "2026-10-02T10:00:00.000Z", status="new"),
            _stored_lead("l3", "2026-10-03T10:00:00.000Z", status="qualified"),
            _stored_lead("l4", "2026-10-04T10:00:00.000Z", status="new", source="calendar"),
            _stored_lead("l5", "2026-10-05T10:00:00.000Z", status="lost"),
            _stored_lead("l6", "2026-10-06T10:00:00.000Z", status="converted"),
        ]
    )
    stats = await LeadService(store).get_lead_stats()

    assert stats.total_leads == 6
    assert stats.new_leads == 2
    assert stats.qualified_leads == 1
    assert stats.converted_leads == 2
    assert stats.conversion_rate == 33
    assert stats.leads_by_source == {"video": 1, "form": 4, "calendar": 1}
    assert stats.leads_by_status == {"converted": 2, "new": 2, "qualified": 1, "lost": 1}
    assert [lead.id for lead in stats.recent_leads] == ["l6", "l5", "l4", "l3", "l2"]


@pytest.mark.asyncio
async def test_empty_stats(lead_service):
    stats = await lead_service.get_lead_stats()
    assert stats.total_leads == 0
    assert stats.conversion_rate == 0
    assert stats.recent_leads == []


@pytest.mark.asyncio
async def test_bulk_status_update_counts_partial_success(lead_service):
    lead = await lead_service.create_lead(_form())

    updated = await lead_service.bulk_update_lead_status([lead.id, "lead_missing"], "qualified")

    assert updated == 1
    assert (await lead_service.get_lead_by_id(lead.id)).status == "qualified"


@pytest.mark.asyncio
async def test_unknown_status_is_rejected(lead_service):
    with pytest.raises(ValueError):
        await lead_service.bulk_update_lead_status(["lead_1"], "archived")


@pytest.mark.asyncio
async def test_delete_and_export(lead_service):
    keep = await lead_service.create_lead(_form(name="Keep"))
    drop = await lead_service.create_lead(_form(name="Drop"))

    assert await lead_service.delete_lead(drop.id) is True
    assert [lead.id for lead in await lead_service.get_all_leads()] == [keep.id]

    exported = json.loads(await lead_service.export_leads())
    assert exported["totalCount"] == 1
    assert exported["stats"]["totalLeads"] == 1
    assert exported["leads"][0]["name"] == "Keep"


@pytest.mark.asyncio
async def test_store_failure_returns_safe_defaults(unavailable_store):
    service = LeadService(unavailable_store)

    assert await service.get_all_leads() == []
    assert await service.get_lead_by_id("lead_1") is None
    assert await service.create_lead(_form()) is None
    assert await service.add_note_to_lead("lead_1", "x") is False
    assert await service.change_lead_status("lead_1", "contacted") is False
    assert await service.delete_lead("lead_1") is False
    assert await service.filter_leads({"status": "new"}) == []
    assert (await service.get_lead_stats()).total_leads == 0
    assert await service.export_leads() == ""
    assert await service.bulk_update_lead_status(["lead_1", "lead_2"], "lost") == 0


@pytest.mark.asyncio
async def test_strict_mode_surfaces_store_failure(unavailable_store):
    service = LeadService(unavailable_store, strict=True)
    with pytest.raises(StoreError):
        await service.create_lead(_form())


@pytest.mark.asyncio
async def test_null_for_required_field_is_rejected_and_store_stays_readable(lead_service):
    ada = await lead_service.create_lead(_form())
    bob = await lead_service.create_lead(_form(name="Bob", email="bob@example.com"))

    with pytest.raises(ValidationError):
        await lead_service.update_lead(ada.id, {"name": None})
    with pytest.raises(ValidationError):
        await lead_service.update_lead(ada.id, {"email": None, "priority": "high"})

    assert (await lead_service.get_lead_by_id(ada.id)).name == "Ada Lovelace"
    assert (await lead_service.get_lead_by_id(bob.id)).name == "Bob"
    assert len(await lead_service.get_all_leads()) == 2


@pytest.mark.asyncio
async def test_null_clears_optional_fields(lead_service):
    lead = await lead_service.create_lead(_form(company="Acme", phone="555-0100"))

    updated = await lead_service.update_lead(lead.id, {"company": None})

    assert updated.company is None
    assert updated.phone == "555-0100"
    assert (await lead_service.get_lead_by_id(lead.id)).company is None


@pytest.mark.asyncio
async def test_concurrent_notes_are_not_lost(yielding_store):
    service = LeadService(yielding_store)
    lead = await service.create_lead(_form())

    results = await asyncio.gather(*(service.add_note_to_lead(lead.id, f"note {i}") for i in range(20)))

    assert all(results)
    notes = (await service.get_lead_by_id(lead.id)).notes
    assert sorted(note.text for note in notes) == sorted(f"note {i}" for i in range(20))


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_counters(yielding_store):
    service = LeadService(yielding_store)

    leads = await asyncio.gather(*(service.create_lead(_form(name=f"Lead {i}")) for i in range(10)))

    counters = sorted(int(lead.id.split("_")[1]) for lead in leads)
    assert counters == list(range(1, 11))
    assert len(await service.get_all_leads()) == 10
