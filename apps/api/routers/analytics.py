"""
Router for per-video view and engagement analytics.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import Field

from models.analytics import EngagementType, ViewSource
from models.base import CamelModel
from routers.deps import get_analytics_service
from services.analytics import AnalyticsService

router = APIRouter()


class CreateAnalyticsRequest(CamelModel):
    video_id: str
    video_title: str


class RecordViewRequest(CamelModel):
    duration: float = Field(default=0, ge=0)
    completed: bool = False
    source: ViewSource = "direct"


class RecordEngagementRequest(CamelModel):
    type: EngagementType


@router.get("")
async def list_analytics(service: AnalyticsService = Depends(get_analytics_service)):
    """All tracked videos in insertion order."""
    return await service.get_all_analytics()


@router.get("/summary")
async def get_summary(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_analytics_summary()


@router.get("/range")
async def get_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Videos whose tracking started within [start, end]."""
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    return await service.get_analytics_for_date_range(start, end)


@router.get("/export")
async def export_analytics(service: AnalyticsService = Depends(get_analytics_service)):
    content = await service.export_analytics()
    if not content:
        raise HTTPException(status_code=503, detail="Analytics export is unavailable.")
    return Response(content=content, media_type="application/json")


@router.post("", status_code=201)
async def create_analytics(
    request: CreateAnalyticsRequest,
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.create_video_analytics(request.video_id, request.video_title)
    if analytics is None:
        raise HTTPException(status_code=503, detail="Failed to create analytics.")
    return analytics


@router.get("/{video_id}")
async def get_video_analytics(video_id: str, service: AnalyticsService = Depends(get_analytics_service)):
    analytics = await service.get_video_analytics(video_id)
    if analytics is None:
        raise HTTPException(status_code=404, detail="Analytics not found")
    return analytics


@router.delete("/{video_id}")
async def delete_video_analytics(video_id: str, service: AnalyticsService = Depends(get_analytics_service)):
    if await service.get_video_analytics(video_id) is None:
        raise HTTPException(status_code=404, detail="Analytics not found")
    await service.delete_video_analytics(video_id)
    return {"success": True}


@router.post("/{video_id}/views")
async def record_view(
    video_id: str,
    request: RecordViewRequest,
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.record_view(video_id, request.duration, request.completed, request.source)
    if analytics is None:
        raise HTTPException(status_code=404, detail="Analytics not found")
    return analytics


@router.post("/{video_id}/engagements")
async def record_engagement(
    video_id: str,
    request: RecordEngagementRequest,
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.record_engagement(video_id, request.type)
    if analytics is None:
        raise HTTPException(status_code=404, detail="Analytics not found")
    return analytics
