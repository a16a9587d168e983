"""Public share links for videos."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator

from .base import CamelModel, format_timestamp, parse_timestamp, try_parse_timestamp


class SharedVideo(CamelModel):
    """Share link record; ``id`` doubles as the public slug.

    An ``expires_at`` that cannot be parsed never counts as expired for
    lookups, but is not active either, so an expiry sweep removes it.
    """
    id: str
    video_id: str
    title: str
    creator_name: str
    creator_email: str
    share_url: str
    qr_code_url: str
    is_public: bool = True
    password: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: str
    view_count: int = Field(default=0, ge=0)
    lead_count: int = Field(default=0, ge=0)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once ``expires_at`` lies strictly in the past."""
        if not self.expires_at:
            return False
        expires_at = try_parse_timestamp(self.expires_at)
        if expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current > expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """True while the share survives an expiry sweep."""
        if not self.expires_at:
            return True
        expires_at = try_parse_timestamp(self.expires_at)
        if expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return expires_at > current


class VideoShareOptions(CamelModel):
    is_public: bool = True
    require_password: bool = False
    password: Optional[str] = None
    expiration_days: Optional[float] = None
    custom_message: Optional[str] = None


class SharedVideoUpdate(CamelModel):
    """Mutable share settings. ``password`` and ``expiresAt`` may be cleared with null."""
    is_public: Optional[bool] = None
    password: Optional[str] = None
    expires_at: Optional[str] = None

    @field_validator("is_public")
    @classmethod
    def _is_public_not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @field_validator("expires_at")
    @classmethod
    def _normalize_expiry(cls, value):
        if value is None:
            return value
        return format_timestamp(parse_timestamp(value))


class ShareAnalytics(CamelModel):
    total_shares: int = 0
    total_views: int = 0
    total_leads: int = 0
    conversion_rate: int = 0
    top_performing_shares: List[SharedVideo] = Field(default_factory=list)


class EmailTemplate(CamelModel):
    subject: str
    body: str
