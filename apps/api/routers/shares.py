"""
Router for video share links.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from models.base import CamelModel
from models.shared_video import SharedVideoUpdate, VideoShareOptions
from routers.deps import get_sharing_service
from services.video_sharing import VideoSharingService

router = APIRouter()
logger = logging.getLogger(__name__)

SHARE_NOT_FOUND = "Share link not found or expired"


class ShareVideoRequest(CamelModel):
    video_id: str
    title: str
    creator_name: str
    creator_email: str
    options: VideoShareOptions = VideoShareOptions()


class AccessRequest(CamelModel):
    password: Optional[str] = None


class TemplateRequest(CamelModel):
    custom_message: Optional[str] = None


async def _require_active_share(service: VideoSharingService, share_id: str):
    shared_video = await service.get_shared_video(share_id)
    if shared_video is None:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND)
    return shared_video


@router.post("", status_code=201)
async def share_video(request: ShareVideoRequest, service: VideoSharingService = Depends(get_sharing_service)):
    shared_video = await service.share_video(
        request.video_id,
        request.title,
        request.creator_name,
        request.creator_email,
        request.options,
    )
    if shared_video is None:
        raise HTTPException(status_code=503, detail="Failed to create share link.")
    return shared_video


@router.get("")
async def list_shares(service: VideoSharingService = Depends(get_sharing_service)):
    """Every share owned by this install, expired ones included."""
    return await service.get_all_shared_videos()


@router.get("/analytics")
async def get_share_analytics(
    video_id: Optional[str] = None,
    service: VideoSharingService = Depends(get_sharing_service),
):
    return await service.get_share_analytics(video_id)


@router.get("/export")
async def export_shares(service: VideoSharingService = Depends(get_sharing_service)):
    content = await service.export_shared_videos()
    if not content:
        raise HTTPException(status_code=503, detail="Share export is unavailable.")
    return Response(content=content, media_type="application/json")


@router.post("/cleanup")
async def cleanup_expired(service: VideoSharingService = Depends(get_sharing_service)):
    removed = await service.cleanup_expired_shares()
    logger.info("Expired share cleanup removed=%s", removed)
    return {"removed": removed}


@router.get("/{share_id}")
async def get_share(share_id: str, service: VideoSharingService = Depends(get_sharing_service)):
    """Public view of an active share; the password never leaves the server."""
    shared_video = await _require_active_share(service, share_id)
    return shared_video.model_dump(mode="json", by_alias=True, exclude={"password"})


@router.patch("/{share_id}")
async def update_share(
    share_id: str,
    request: SharedVideoUpdate,
    service: VideoSharingService = Depends(get_sharing_service),
):
    if not await service.update_shared_video(share_id, request):
        raise HTTPException(status_code=404, detail="Share link not found")
    return {"success": True}


@router.delete("/{share_id}")
async def delete_share(share_id: str, service: VideoSharingService = Depends(get_sharing_service)):
    if not await service.delete_shared_video(share_id):
        raise HTTPException(status_code=503, detail="Failed to delete share link.")
    return {"success": True}


@router.post("/{share_id}/views")
async def record_share_view(share_id: str, service: VideoSharingService = Depends(get_sharing_service)):
    if not await service.record_view(share_id):
        raise HTTPException(status_code=404, detail="Share link not found")
    return {"success": True}


@router.post("/{share_id}/leads")
async def record_share_lead(share_id: str, service: VideoSharingService = Depends(get_sharing_service)):
    if not await service.record_lead(share_id):
        raise HTTPException(status_code=404, detail="Share link not found")
    return {"success": True}


@router.post("/{share_id}/access")
async def validate_access(
    share_id: str,
    request: AccessRequest,
    service: VideoSharingService = Depends(get_sharing_service),
):
    return {"granted": await service.validate_access(share_id, request.password)}


@router.post("/{share_id}/message")
async def share_message(
    share_id: str,
    request: TemplateRequest,
    service: VideoSharingService = Depends(get_sharing_service),
):
    shared_video = await _require_active_share(service, share_id)
    return {"message": service.generate_share_message(shared_video, request.custom_message)}


@router.post("/{share_id}/email")
async def share_email(
    share_id: str,
    request: TemplateRequest,
    service: VideoSharingService = Depends(get_sharing_service),
):
    shared_video = await _require_active_share(service, share_id)
    return service.generate_email_template(shared_video, request.custom_message)
