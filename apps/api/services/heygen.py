"""Thin client for the HeyGen avatar and video generation API."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from config import require_heygen_api_key, settings

logger = logging.getLogger(__name__)


class HeyGenError(RuntimeError):
    """Raised when HeyGen rejects a request or cannot be reached."""


def _data(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else {}


class HeyGenClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.HEYGEN_BASE_URL).rstrip("/"),
            headers={"X-Api-Key": api_key or require_heygen_api_key()},
            timeout=timeout if timeout is not None else settings.HEYGEN_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "HeyGenClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise HeyGenError(f"HeyGen request failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.is_error:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise HeyGenError(message or f"HeyGen returned status {response.status_code}")
        return payload if isinstance(payload, dict) else {}

    async def upload_avatar(self, image: bytes, avatar_name: str, *, mime_type: str = "image/jpeg") -> str:
        """Upload a photo and return the new avatar id."""
        encoded = base64.b64encode(image).decode("ascii")
        payload = await self._request(
            "POST",
            "/avatars/upload",
            json={"image": f"data:{mime_type};base64,{encoded}", "avatar_name": avatar_name},
        )
        avatar_id = _data(payload).get("avatar_id") or payload.get("avatar_id")
        if not avatar_id:
            raise HeyGenError("HeyGen did not return an avatar id")
        logger.info("Uploaded avatar %s as %s", avatar_name, avatar_id)
        return avatar_id

    async def get_avatar_status(self, avatar_id: str) -> Dict[str, Any]:
        data = _data(await self._request("GET", f"/avatars/{avatar_id}"))
        return {
            "id": avatar_id,
            "status": data.get("status") or "processing",
            "image_url": data.get("image_url"),
        }

    async def generate_video(
        self,
        avatar_id: str,
        input_text: str,
        *,
        aspect_ratio: str = "16:9",
        test: bool = False,
    ) -> Optional[str]:
        """Queue a talking-avatar video; returns the video id when HeyGen supplies one."""
        payload = await self._request(
            "POST",
            "/video/generate",
            json={
                "video_inputs": [
                    {
                        "character": {"type": "avatar", "avatar_id": avatar_id},
                        "voice": {"type": "text", "input_text": input_text},
                    }
                ],
                "aspect_ratio": aspect_ratio,
                "test": test,
            },
        )
        return _data(payload).get("video_id") or payload.get("video_id")
