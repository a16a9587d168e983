"""Share links for videos: expiry, access control and share-level analytics."""

from __future__ import annotations

import json
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional, Union
from urllib.parse import quote

from config import settings
from models.base import format_timestamp, utc_now_iso
from models.shared_video import (
    EmailTemplate,
    ShareAnalytics,
    SharedVideo,
    SharedVideoUpdate,
    VideoShareOptions,
)
from services.common import StoreBackedService, percentage, store_fallback
from store import JsonCollection, KeyValueStore, dump_records

logger = logging.getLogger(__name__)

SHARED_VIDEOS_KEY = "shared_videos"
SHARE_ID_LENGTH = 12
SHARE_ID_ALPHABET = string.ascii_letters + string.digits
TOP_SHARES_LIMIT = 5


def generate_share_id() -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(SHARE_ID_LENGTH))


def summarize_shares(shares: List[SharedVideo]) -> ShareAnalytics:
    total_views = sum(share.view_count for share in shares)
    total_leads = sum(share.lead_count for share in shares)
    return ShareAnalytics(
        total_shares=len(shares),
        total_views=total_views,
        total_leads=total_leads,
        conversion_rate=percentage(total_leads, total_views),
        top_performing_shares=sorted(shares, key=lambda share: share.view_count, reverse=True)[:TOP_SHARES_LIMIT],
    )


def generate_share_message(shared_video: SharedVideo, custom_message: Optional[str] = None) -> str:
    base_message = custom_message or f'Check out this video: "{shared_video.title}" by {shared_video.creator_name}'
    return f"{base_message}\n\n🎥 Watch here: {shared_video.share_url}\n\nCreated with Converzio"


def generate_email_template(shared_video: SharedVideo, custom_message: Optional[str] = None) -> EmailTemplate:
    creator = shared_video.creator_name
    body = "\n".join(
        [
            "Hi there!",
            "",
            f"{creator} has shared a video with you.",
            "",
            f'📹 "{shared_video.title}"',
            "",
            custom_message or "I thought you might find this interesting!",
            "",
            f"Watch the video here: {shared_video.share_url}",
            "",
            "If you have any questions or would like to get in touch, you can reply directly through the video page.",
            "",
            "Best regards,",
            creator,
            "",
            "---",
            "This video was created with Converzio - AI-powered professional video creation.",
        ]
    )
    return EmailTemplate(subject=f"{creator} shared a video with you: {shared_video.title}", body=body)


class VideoSharingService(StoreBackedService):
    """Owns SharedVideo records.

    Expiry is lazy: ``get_shared_video`` and ``validate_access`` hide expired
    shares, while ``record_view``/``record_lead`` still count against them until
    ``cleanup_expired_shares`` removes them.
    """

    generate_share_message = staticmethod(generate_share_message)
    generate_email_template = staticmethod(generate_email_template)

    def __init__(
        self,
        store: KeyValueStore,
        *,
        base_url: Optional[str] = None,
        qr_service_url: Optional[str] = None,
        qr_size: Optional[str] = None,
        id_factory: Callable[[], str] = generate_share_id,
        strict: bool = False,
    ) -> None:
        super().__init__(store, strict=strict)
        self.base_url = (base_url or settings.SHARE_BASE_URL).rstrip("/")
        self.qr_service_url = qr_service_url or settings.QR_CODE_SERVICE_URL
        self.qr_size = qr_size or settings.QR_CODE_SIZE
        self._id_factory = id_factory
        self._shares = JsonCollection(store, SHARED_VIDEOS_KEY, SharedVideo)

    def build_share_url(self, share_id: str) -> str:
        return f"{self.base_url}/watch/{share_id}"

    def build_qr_code_url(self, share_url: str) -> str:
        # Rendering is delegated to the external QR service
        return f"{self.qr_service_url}?size={self.qr_size}&data={quote(share_url, safe='')}"

    @store_fallback(None, "sharing video")
    async def share_video(
        self,
        video_id: str,
        title: str,
        creator_name: str,
        creator_email: str,
        options: Union[VideoShareOptions, Mapping[str, Any], None] = None,
    ) -> Optional[SharedVideo]:
        share_options = VideoShareOptions() if options is None else VideoShareOptions.coerce(options)
        now = datetime.now(timezone.utc)
        expires_at = None
        if share_options.expiration_days:
            expires_at = format_timestamp(now + timedelta(days=share_options.expiration_days))

        share_id = self._id_factory()
        share_url = self.build_share_url(share_id)
        shared_video = SharedVideo(
            id=share_id,
            video_id=video_id,
            title=title,
            creator_name=creator_name,
            creator_email=creator_email,
            share_url=share_url,
            qr_code_url=self.build_qr_code_url(share_url),
            is_public=share_options.is_public,
            password=share_options.password,
            expires_at=expires_at,
            created_at=format_timestamp(now),
        )
        async with self._shares.lock:
            shares = await self._shares.load()
            shares.append(shared_video)
            await self._shares.save(shares)
        logger.info("Shared video %s as %s (public=%s)", video_id, share_id, shared_video.is_public)
        return shared_video

    @store_fallback(list, "loading shared videos")
    async def get_all_shared_videos(self) -> List[SharedVideo]:
        """Every stored share, expired ones included."""
        return await self._shares.load()

    @store_fallback(None, "loading shared video")
    async def get_shared_video(self, share_id: str) -> Optional[SharedVideo]:
        shared_video = next((s for s in await self._shares.load() if s.id == share_id), None)
        if shared_video is None or shared_video.is_expired():
            return None
        return shared_video

    @store_fallback(False, "recording share view")
    async def record_view(self, share_id: str) -> bool:
        return await self._increment(share_id, "view_count")

    @store_fallback(False, "recording share lead")
    async def record_lead(self, share_id: str) -> bool:
        return await self._increment(share_id, "lead_count")

    @store_fallback(False, "updating shared video")
    async def update_shared_video(
        self,
        share_id: str,
        updates: Union[SharedVideoUpdate, Mapping[str, Any]],
    ) -> bool:
        changes = SharedVideoUpdate.coerce(updates).set_fields()
        async with self._shares.lock:
            shares = await self._shares.load()
            for index, shared_video in enumerate(shares):
                if shared_video.id == share_id:
                    shares[index] = SharedVideo.model_validate({**shared_video.model_dump(), **changes})
                    await self._shares.save(shares)
                    return True
        return False

    @store_fallback(False, "deleting shared video")
    async def delete_shared_video(self, share_id: str) -> bool:
        async with self._shares.lock:
            shares = [s for s in await self._shares.load() if s.id != share_id]
            await self._shares.save(shares)
        return True

    @store_fallback(ShareAnalytics, "computing share analytics")
    async def get_share_analytics(self, video_id: Optional[str] = None) -> ShareAnalytics:
        shares = await self._shares.load()
        if video_id:
            shares = [s for s in shares if s.video_id == video_id]
        return summarize_shares(shares)

    @store_fallback(False, "validating share access")
    async def validate_access(self, share_id: str, password: Optional[str] = None) -> bool:
        shared_video = await self.get_shared_video(share_id)
        if shared_video is None:
            return False
        if shared_video.is_public:
            return True
        if shared_video.password:
            # Stored in plaintext; compared literally
            return password == shared_video.password
        return True

    @store_fallback("", "exporting shared videos")
    async def export_shared_videos(self) -> str:
        shares = await self._shares.load()
        return json.dumps(
            {
                "sharedVideos": dump_records(shares),
                "analytics": summarize_shares(shares).model_dump(mode="json", by_alias=True, exclude_none=True),
                "exportedAt": utc_now_iso(),
            },
            indent=2,
            ensure_ascii=False,
        )

    @store_fallback(0, "cleaning up expired shares")
    async def cleanup_expired_shares(self) -> int:
        """Physically remove expired shares; returns how many were dropped."""
        now = datetime.now(timezone.utc)
        async with self._shares.lock:
            shares = await self._shares.load()
            active = [s for s in shares if s.is_active(now)]
            removed = len(shares) - len(active)
            if removed:
                await self._shares.save(active)
        if removed:
            logger.info("Removed %d expired share(s)", removed)
        return removed

    async def _increment(self, share_id: str, counter: str) -> bool:
        # No expiry check: counts still land on expired-but-present shares
        async with self._shares.lock:
            shares = await self._shares.load()
            for shared_video in shares:
                if shared_video.id == share_id:
                    setattr(shared_video, counter, getattr(shared_video, counter) + 1)
                    await self._shares.save(shares)
                    return True
        return False
