"""Lead capture and lightweight CRM over the key-value store."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from models.base import try_parse_timestamp, utc_now_iso
from models.lead import (
    CONTACT_NOTE_TYPES,
    LEAD_STATUSES,
    Lead,
    LeadFilters,
    LeadFormData,
    LeadNote,
    LeadStats,
    LeadStatus,
    LeadUpdate,
    NoteType,
)
from services.common import StoreBackedService, now_ms, percentage, store_fallback, unique_id
from store import JsonCollection, KeyValueStore, StoreError, dump_records

logger = logging.getLogger(__name__)

LEADS_KEY = "leads"
LEAD_COUNTER_KEY = "lead_counter"
RECENT_LEADS_LIMIT = 5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(leads: Iterable[Lead]) -> List[Lead]:
    return sorted(leads, key=lambda lead: try_parse_timestamp(lead.created_at) or _EPOCH, reverse=True)


def _index_of(leads: List[Lead], lead_id: str) -> Optional[int]:
    return next((i for i, lead in enumerate(leads) if lead.id == lead_id), None)


def _check_status(status: str) -> None:
    if status not in LEAD_STATUSES:
        raise ValueError(f"Unknown lead status: {status!r}")


def _matches_search(lead: Lead, term: str) -> bool:
    fields = (lead.name, lead.email, lead.company, lead.message)
    return any(value and term in value.lower() for value in fields)


def apply_filters(leads: Iterable[Lead], filters: LeadFilters) -> List[Lead]:
    """AND-compose the set filters; newest leads first."""
    selected = list(leads)
    if filters.status:
        selected = [lead for lead in selected if lead.status == filters.status]
    if filters.priority:
        selected = [lead for lead in selected if lead.priority == filters.priority]
    if filters.source:
        selected = [lead for lead in selected if lead.source == filters.source]
    if filters.tags:
        wanted = {tag.lower() for tag in filters.tags}
        selected = [lead for lead in selected if wanted.intersection(lead.tags)]
    if filters.search:
        term = filters.search.lower()
        selected = [lead for lead in selected if _matches_search(lead, term)]
    return _newest_first(selected)


def compute_stats(leads: List[Lead]) -> LeadStats:
    by_status = Counter(lead.status for lead in leads)
    converted = by_status.get("converted", 0)
    return LeadStats(
        total_leads=len(leads),
        new_leads=by_status.get("new", 0),
        qualified_leads=by_status.get("qualified", 0),
        converted_leads=converted,
        conversion_rate=percentage(converted, len(leads)),
        leads_by_source=dict(Counter(lead.source for lead in leads)),
        leads_by_status=dict(by_status),
        recent_leads=_newest_first(leads)[:RECENT_LEADS_LIMIT],
    )


class LeadService(StoreBackedService):
    """Owns Lead records and the per-install lead counter."""

    def __init__(self, store: KeyValueStore, *, strict: bool = False) -> None:
        super().__init__(store, strict=strict)
        self._leads = JsonCollection(store, LEADS_KEY, Lead)
        self._counter_lock = asyncio.Lock()

    @store_fallback(list, "loading leads")
    async def get_all_leads(self) -> List[Lead]:
        return await self._leads.load()

    @store_fallback(None, "loading lead")
    async def get_lead_by_id(self, lead_id: str) -> Optional[Lead]:
        leads = await self._leads.load()
        index = _index_of(leads, lead_id)
        return None if index is None else leads[index]

    @store_fallback(None, "creating lead")
    async def create_lead(self, form_data: Union[LeadFormData, Mapping[str, Any]]) -> Optional[Lead]:
        """Persist a new lead from a form submission.

        The form is not validated beyond its schema; required-field checks
        belong to the caller. A non-empty ``message`` seeds the first note.
        """
        form = LeadFormData.coerce(form_data)
        counter = await self._next_lead_counter()
        created_at = utc_now_iso()
        lead = Lead(
            id=f"lead_{counter}_{now_ms()}",
            name=form.name,
            email=form.email,
            phone=form.phone,
            company=form.company,
            message=form.message,
            source=form.source,
            created_at=created_at,
            video_id=form.video_id,
            custom_fields=dict(form.custom_fields or {}),
        )
        if form.message:
            lead.notes.append(
                LeadNote(
                    id=unique_id("note"),
                    text=f"Initial message: {form.message}",
                    created_at=created_at,
                )
            )

        async with self._leads.lock:
            leads = await self._leads.load()
            index = _index_of(leads, lead.id)
            if index is None:
                leads.append(lead)
            else:
                leads[index] = lead
            await self._leads.save(leads)
        logger.info("Created lead %s (source=%s)", lead.id, lead.source)
        return lead

    async def capture_video_lead(
        self,
        video_id: str,
        name: str,
        email: str,
        message: Optional[str] = None,
    ) -> Optional[Lead]:
        """Create a lead from a contact form shown alongside a video."""
        return await self.create_lead(
            LeadFormData(name=name, email=email, message=message, source="video", video_id=video_id)
        )

    @store_fallback(None, "updating lead")
    async def update_lead(
        self,
        lead_id: str,
        updates: Union[LeadUpdate, Mapping[str, Any]],
    ) -> Optional[Lead]:
        """Shallow-merge ``updates`` into the lead; lists such as ``notes`` are replaced whole."""
        changes = LeadUpdate.coerce(updates).set_fields()
        async with self._leads.lock:
            leads = await self._leads.load()
            index = _index_of(leads, lead_id)
            if index is None:
                return None
            leads[index] = Lead.model_validate({**leads[index].model_dump(), **changes})
            await self._leads.save(leads)
            return leads[index]

    @store_fallback(False, "adding note to lead")
    async def add_note_to_lead(self, lead_id: str, text: str, note_type: NoteType = "note") -> bool:
        note = LeadNote(id=unique_id("note"), text=text, created_at=utc_now_iso(), type=note_type)
        async with self._leads.lock:
            leads = await self._leads.load()
            index = _index_of(leads, lead_id)
            if index is None:
                return False
            lead = leads[index]
            lead.notes.append(note)
            if note.type in CONTACT_NOTE_TYPES:
                lead.last_contacted_at = note.created_at
            await self._leads.save(leads)
        return True

    async def change_lead_status(self, lead_id: str, status: LeadStatus) -> bool:
        """Set the status; moving to ``contacted`` also stamps ``lastContactedAt``."""
        _check_status(status)
        updates = LeadUpdate(status=status)
        if status == "contacted":
            updates = LeadUpdate(status=status, last_contacted_at=utc_now_iso())
        return await self.update_lead(lead_id, updates) is not None

    @store_fallback(False, "adding tags to lead")
    async def add_tags_to_lead(self, lead_id: str, tags: Iterable[str]) -> bool:
        async with self._leads.lock:
            leads = await self._leads.load()
            index = _index_of(leads, lead_id)
            if index is None:
                return False
            merged = list(leads[index].tags)
            for tag in tags:
                normalized = tag.lower()
                if normalized not in merged:
                    merged.append(normalized)
            leads[index].tags = merged
            await self._leads.save(leads)
        return True

    @store_fallback(list, "filtering leads")
    async def filter_leads(
        self,
        filters: Union[LeadFilters, Mapping[str, Any], None] = None,
    ) -> List[Lead]:
        criteria = LeadFilters() if filters is None else LeadFilters.coerce(filters)
        return apply_filters(await self._leads.load(), criteria)

    @store_fallback(LeadStats, "computing lead stats")
    async def get_lead_stats(self) -> LeadStats:
        return compute_stats(await self._leads.load())

    @store_fallback(False, "deleting lead")
    async def delete_lead(self, lead_id: str) -> bool:
        async with self._leads.lock:
            leads = [lead for lead in await self._leads.load() if lead.id != lead_id]
            await self._leads.save(leads)
        return True

    @store_fallback("", "exporting leads")
    async def export_leads(self) -> str:
        leads = await self._leads.load()
        return json.dumps(
            {
                "leads": dump_records(leads),
                "stats": compute_stats(leads).model_dump(mode="json", by_alias=True, exclude_none=True),
                "exportedAt": utc_now_iso(),
                "totalCount": len(leads),
            },
            indent=2,
            ensure_ascii=False,
        )

    async def bulk_update_lead_status(self, lead_ids: Iterable[str], status: LeadStatus) -> int:
        """Apply ``status`` to each lead independently; returns how many were updated."""
        _check_status(status)
        updated = 0
        for lead_id in lead_ids:
            if await self.change_lead_status(lead_id, status):
                updated += 1
        return updated

    async def _next_lead_counter(self) -> int:
        async with self._counter_lock:
            try:
                raw = await self.store.get(LEAD_COUNTER_KEY)
                next_counter = int(raw) + 1 if raw else 1
                await self.store.set(LEAD_COUNTER_KEY, str(next_counter))
                return next_counter
            except StoreError:
                if self.strict:
                    raise
                logger.warning("Lead counter unavailable, falling back to timestamp", exc_info=True)
            except ValueError:
                logger.warning("Lead counter is corrupt, falling back to timestamp")
            return now_ms()
