"""
Router for lead capture and follow-up.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import Field

from models.base import CamelModel
from models.lead import (
    LeadFilters,
    LeadFormData,
    LeadPriority,
    LeadSource,
    LeadStatus,
    LeadUpdate,
    NoteType,
)
from routers.deps import get_lead_service
from services.leads import LeadService

router = APIRouter()

LEAD_NOT_FOUND = "Lead not found"


class CaptureVideoLeadRequest(CamelModel):
    video_id: str
    name: str
    email: str
    message: Optional[str] = None


class AddNoteRequest(CamelModel):
    text: str = Field(min_length=1)
    type: NoteType = "note"


class ChangeStatusRequest(CamelModel):
    status: LeadStatus


class AddTagsRequest(CamelModel):
    tags: List[str]


class BulkStatusRequest(CamelModel):
    lead_ids: List[str]
    status: LeadStatus


async def _require_lead(service: LeadService, lead_id: str):
    lead = await service.get_lead_by_id(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail=LEAD_NOT_FOUND)
    return lead


@router.get("")
async def list_leads(
    status: Optional[LeadStatus] = None,
    priority: Optional[LeadPriority] = None,
    source: Optional[LeadSource] = None,
    tags: Optional[List[str]] = Query(default=None),
    search: Optional[str] = None,
    service: LeadService = Depends(get_lead_service),
):
    """Leads matching every supplied filter, newest first."""
    filters = LeadFilters(status=status, priority=priority, source=source, tags=tags, search=search)
    return await service.filter_leads(filters)


@router.get("/stats")
async def get_stats(service: LeadService = Depends(get_lead_service)):
    return await service.get_lead_stats()


@router.get("/export")
async def export_leads(service: LeadService = Depends(get_lead_service)):
    content = await service.export_leads()
    if not content:
        raise HTTPException(status_code=503, detail="Lead export is unavailable.")
    return Response(content=content, media_type="application/json")


@router.post("", status_code=201)
async def create_lead(request: LeadFormData, service: LeadService = Depends(get_lead_service)):
    lead = await service.create_lead(request)
    if lead is None:
        raise HTTPException(status_code=503, detail="Failed to save lead.")
    return lead


@router.post("/capture", status_code=201)
async def capture_video_lead(request: CaptureVideoLeadRequest, service: LeadService = Depends(get_lead_service)):
    lead = await service.capture_video_lead(request.video_id, request.name, request.email, request.message)
    if lead is None:
        raise HTTPException(status_code=503, detail="Failed to save lead.")
    return lead


@router.post("/bulk/status")
async def bulk_update_status(request: BulkStatusRequest, service: LeadService = Depends(get_lead_service)):
    updated = await service.bulk_update_lead_status(request.lead_ids, request.status)
    return {"updated": updated, "requested": len(request.lead_ids)}


@router.get("/{lead_id}")
async def get_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    return await _require_lead(service, lead_id)


@router.patch("/{lead_id}")
async def update_lead(lead_id: str, request: LeadUpdate, service: LeadService = Depends(get_lead_service)):
    await _require_lead(service, lead_id)
    lead = await service.update_lead(lead_id, request)
    if lead is None:
        raise HTTPException(status_code=503, detail="Failed to update lead.")
    return lead


@router.delete("/{lead_id}")
async def delete_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    await _require_lead(service, lead_id)
    if not await service.delete_lead(lead_id):
        raise HTTPException(status_code=503, detail="Failed to delete lead.")
    return {"success": True}


@router.post("/{lead_id}/notes")
async def add_note(lead_id: str, request: AddNoteRequest, service: LeadService = Depends(get_lead_service)):
    await _require_lead(service, lead_id)
    if not await service.add_note_to_lead(lead_id, request.text, request.type):
        raise HTTPException(status_code=503, detail="Failed to add note.")
    return await _require_lead(service, lead_id)


@router.put("/{lead_id}/status")
async def change_status(lead_id: str, request: ChangeStatusRequest, service: LeadService = Depends(get_lead_service)):
    await _require_lead(service, lead_id)
    if not await service.change_lead_status(lead_id, request.status):
        raise HTTPException(status_code=503, detail="Failed to change lead status.")
    return await _require_lead(service, lead_id)


@router.post("/{lead_id}/tags")
async def add_tags(lead_id: str, request: AddTagsRequest, service: LeadService = Depends(get_lead_service)):
    await _require_lead(service, lead_id)
    if not await service.add_tags_to_lead(lead_id, request.tags):
        raise HTTPException(status_code=503, detail="Failed to add tags.")
    return await _require_lead(service, lead_id)
