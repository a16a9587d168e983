"""Per-video view and engagement analytics."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from models.analytics import (
    AnalyticsSummary,
    EngagementType,
    VideoAnalytics,
    ViewEvent,
    ViewSource,
)
from models.base import parse_timestamp, try_parse_timestamp, utc_now_iso
from services.common import StoreBackedService, percentage, round_half_up, store_fallback, unique_id
from store import JsonCollection, KeyValueStore, StoreError, dump_records

logger = logging.getLogger(__name__)

ANALYTICS_KEY = "analytics"
SUMMARY_KEY = "analytics_summary"

_ENGAGEMENT_COUNTERS = {
    "like": "likes",
    "share": "shares",
    "comment": "comments",
}


def calculate_engagement_rate(analytics: VideoAnalytics) -> int:
    """Engagement actions per view, as a whole percentage."""
    total = analytics.likes + analytics.shares + analytics.comments
    return percentage(total, analytics.views)


def summarize(items: Sequence[VideoAnalytics]) -> AnalyticsSummary:
    if not items:
        return AnalyticsSummary()

    total_views = sum(a.views for a in items)
    total_watch_time = sum(a.watch_time for a in items)
    # max() keeps the first record on ties
    top = max(items, key=lambda a: a.views)
    return AnalyticsSummary(
        total_views=total_views,
        total_videos=len(items),
        average_watch_time=round_half_up(total_watch_time / total_views) if total_views else 0,
        top_performing_video=top,
        total_engagement_actions=sum(a.likes + a.shares + a.comments for a in items),
        average_engagement_rate=round_half_up(sum(a.engagement_rate for a in items) / len(items)),
    )


def _find(items: List[VideoAnalytics], video_id: str) -> Optional[VideoAnalytics]:
    return next((a for a in items if a.video_id == video_id), None)


def _as_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, str):
        return parse_timestamp(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AnalyticsService(StoreBackedService):
    """Owns VideoAnalytics records and the cached summary."""

    def __init__(self, store: KeyValueStore, *, strict: bool = False) -> None:
        super().__init__(store, strict=strict)
        self._analytics = JsonCollection(store, ANALYTICS_KEY, VideoAnalytics)

    @store_fallback(list, "loading analytics")
    async def get_all_analytics(self) -> List[VideoAnalytics]:
        return await self._analytics.load()

    @store_fallback(None, "loading video analytics")
    async def get_video_analytics(self, video_id: str) -> Optional[VideoAnalytics]:
        return _find(await self._analytics.load(), video_id)

    @store_fallback(None, "creating video analytics")
    async def create_video_analytics(self, video_id: str, video_title: str) -> Optional[VideoAnalytics]:
        """Create a zeroed record for ``video_id``.

        An existing record for the same video is replaced in place, which
        resets its counters.
        """
        analytics = VideoAnalytics(
            id=unique_id("analytics"),
            video_id=video_id,
            video_title=video_title,
            created_at=utc_now_iso(),
        )
        async with self._analytics.lock:
            items = await self._analytics.load()
            for index, existing in enumerate(items):
                if existing.video_id == video_id:
                    logger.info("Resetting analytics for video %s", video_id)
                    items[index] = analytics
                    break
            else:
                items.append(analytics)
            await self._analytics.save(items)
        return analytics

    @store_fallback(None, "recording view")
    async def record_view(
        self,
        video_id: str,
        duration: float,
        completed: bool = False,
        source: ViewSource = "direct",
    ) -> Optional[VideoAnalytics]:
        """Count a view; returns the updated record, or None if the video is untracked."""
        async with self._analytics.lock:
            items = await self._analytics.load()
            analytics = _find(items, video_id)
            if analytics is None:
                logger.debug("Ignoring view for untracked video %s", video_id)
                return None

            now = utc_now_iso()
            event = ViewEvent(timestamp=now, duration=duration, completed=completed, source=source)
            analytics.views += 1
            analytics.watch_time += event.duration
            analytics.last_viewed = now
            analytics.view_history.append(event)
            analytics.engagement_rate = calculate_engagement_rate(analytics)
            await self._analytics.save(items)
            await self._cache_summary(items)
        return analytics

    @store_fallback(None, "recording engagement")
    async def record_engagement(self, video_id: str, engagement_type: EngagementType) -> Optional[VideoAnalytics]:
        counter = _ENGAGEMENT_COUNTERS.get(engagement_type)
        if counter is None:
            raise ValueError(f"Unknown engagement type: {engagement_type!r}")

        async with self._analytics.lock:
            items = await self._analytics.load()
            analytics = _find(items, video_id)
            if analytics is None:
                logger.debug("Ignoring %s for untracked video %s", engagement_type, video_id)
                return None

            setattr(analytics, counter, getattr(analytics, counter) + 1)
            analytics.engagement_rate = calculate_engagement_rate(analytics)
            await self._analytics.save(items)
            await self._cache_summary(items)
        return analytics

    @store_fallback(AnalyticsSummary, "computing analytics summary")
    async def get_analytics_summary(self) -> AnalyticsSummary:
        return summarize(await self._analytics.load())

    @store_fallback(None, "deleting video analytics")
    async def delete_video_analytics(self, video_id: str) -> None:
        async with self._analytics.lock:
            items = [a for a in await self._analytics.load() if a.video_id != video_id]
            await self._analytics.save(items)
            await self._cache_summary(items)

    @store_fallback(list, "filtering analytics by date")
    async def get_analytics_for_date_range(
        self,
        start: Union[str, datetime],
        end: Union[str, datetime],
    ) -> List[VideoAnalytics]:
        """Records created within ``[start, end]`` inclusive; unparseable bounds match nothing."""
        try:
            start_at, end_at = _as_datetime(start), _as_datetime(end)
        except ValueError:
            logger.warning("Invalid analytics date range %r..%r", start, end)
            return []
        selected = []
        for analytics in await self._analytics.load():
            created = try_parse_timestamp(analytics.created_at)
            if created is not None and start_at <= created <= end_at:
                selected.append(analytics)
        return selected

    @store_fallback("", "exporting analytics")
    async def export_analytics(self) -> str:
        items = await self._analytics.load()
        return json.dumps(
            {
                "summary": summarize(items).model_dump(mode="json", by_alias=True),
                "videoAnalytics": dump_records(items),
                "exportedAt": utc_now_iso(),
            },
            indent=2,
            ensure_ascii=False,
        )

    async def _cache_summary(self, items: Sequence[VideoAnalytics]) -> None:
        # Write-only cache; get_analytics_summary always recomputes.
        try:
            await self.store.set(SUMMARY_KEY, summarize(items).model_dump_json(by_alias=True))
        except StoreError:
            if self.strict:
                raise
            logger.warning("Failed to cache analytics summary", exc_info=True)
