"""Models package."""

from .base import CamelModel
from .analytics import AnalyticsSummary, VideoAnalytics, ViewEvent
from .lead import Lead, LeadFilters, LeadFormData, LeadNote, LeadStats, LeadUpdate
from .shared_video import (
    EmailTemplate,
    ShareAnalytics,
    SharedVideo,
    SharedVideoUpdate,
    VideoShareOptions,
)
