"""FastAPI dependencies resolving the services created at startup."""

from fastapi import Request

from services.analytics import AnalyticsService
from services.leads import LeadService
from services.video_sharing import VideoSharingService
from store import KeyValueStore


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics_service


def get_lead_service(request: Request) -> LeadService:
    return request.app.state.lead_service


def get_sharing_service(request: Request) -> VideoSharingService:
    return request.app.state.sharing_service
