"""Video analytics records."""

from typing import List, Literal, Optional

from pydantic import Field

from .base import CamelModel

ViewSource = Literal["direct", "share", "preview"]
EngagementType = Literal["like", "share", "comment"]


class ViewEvent(CamelModel):
    """A single recorded view of a video."""
    timestamp: str
    duration: float = Field(ge=0)  # seconds watched
    completed: bool = False
    source: ViewSource = "direct"


class VideoAnalytics(CamelModel):
    """Counters for one tracked video."""
    id: str
    video_id: str
    video_title: str
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    watch_time: float = Field(default=0, ge=0)  # cumulative seconds
    created_at: str
    last_viewed: str = ""
    view_history: List[ViewEvent] = Field(default_factory=list)
    engagement_rate: int = 0


class AnalyticsSummary(CamelModel):
    total_views: int = 0
    total_videos: int = 0
    average_watch_time: int = 0
    top_performing_video: Optional[VideoAnalytics] = None
    total_engagement_actions: int = 0
    average_engagement_rate: int = 0
