"""Client for the account backend (auth, profile, photo avatars).

Every endpoint answers with a ``{success, message?, ...}`` envelope. Transport
problems and application-level failures raise different exceptions so the
caller can offer a retry for the former and show the message for the latter.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset(
    {"role", "logo", "photo", "instagram", "tiktok", "facebook", "linkedin", "website"}
)


class BackendError(Exception):
    """Base class for account backend failures."""


class BackendNetworkError(BackendError):
    """The request never completed (connection failure, timeout)."""


class BackendRequestError(BackendError):
    """The backend answered with a non-2xx status or ``success: false``."""

    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.BACKEND_API_URL).rstrip("/"),
            timeout=timeout if timeout is not None else settings.BACKEND_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.warning("Backend %s %s timed out", method, path)
            raise BackendNetworkError("The server took too long to respond. Please try again.") from exc
        except httpx.TransportError as exc:
            logger.warning("Backend %s %s failed: %s", method, path, exc)
            raise BackendNetworkError("Could not reach the server. Check your connection and try again.") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if response.is_error or payload.get("success") is False:
            message = payload.get("message") or payload.get("error") or f"Request failed with status {response.status_code}"
            raise BackendRequestError(response.status_code, message, payload)
        return payload

    async def register(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        company: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = await self._request(
            "POST",
            "/api/auth/register",
            json={
                "firstName": first_name,
                "lastName": last_name,
                "email": email,
                "phone": phone,
                "company": company,
                "password": password,
            },
        )
        return payload.get("user", {})

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = await self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        return payload.get("user", {})

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        payload = await self._request("GET", f"/api/user/{user_id}")
        return payload.get("user", payload)

    async def update_profile(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported profile fields: {', '.join(sorted(unknown))}")
        updates = {key: value for key, value in fields.items() if value is not None}
        if not updates:
            raise ValueError("No profile fields to update")
        return await self._request("PUT", f"/api/user/{user_id}/profile", json=updates)

    async def create_photo_avatar(self, avatar: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self._request("POST", "/api/photo-avatars", json=avatar)
        return payload.get("avatar", payload)

    async def list_photo_avatars(self, user_id: str) -> List[Dict[str, Any]]:
        payload = await self._request("GET", f"/api/photo-avatars/user/{user_id}")
        return payload.get("avatars", [])

    async def get_photo_avatar(self, avatar_id: str) -> Dict[str, Any]:
        payload = await self._request("GET", f"/api/photo-avatars/{avatar_id}")
        return payload.get("avatar", payload)

    async def update_photo_avatar_status(self, avatar_id: str, status: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/api/photo-avatars/{avatar_id}/status", json={"status": status})

    async def delete_photo_avatar(self, avatar_id: str) -> bool:
        payload = await self._request("DELETE", f"/api/photo-avatars/{avatar_id}")
        return bool(payload.get("success", True))

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health")
