"""
Supabase auth admin API (GoTrue) client.

Used for the two operations that need the service-role key: sending class
invitation e-mails and deleting an auth account.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from alloqly.config import settings

logger = logging.getLogger(__name__)


class SupabaseAdminError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SupabaseAdmin:
    """Minimal async client for ``{SUPABASE_URL}/auth/v1``."""

    TIMEOUT: float = 15.0

    def __init__(
        self,
        url: str,
        service_role_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self._key = service_role_key
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT, transport=self._transport) as client:
                resp = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
                )
        except httpx.HTTPError as exc:
            logger.error("Supabase admin %s %s failed: %s", method, path, exc)
            raise SupabaseAdminError(f"Supabase unreachable: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "Supabase admin %s %s returned HTTP %d: %s",
                method,
                path,
                resp.status_code,
                resp.text[:300],
            )
            raise SupabaseAdminError(
                f"Supabase returned HTTP {resp.status_code}", status_code=resp.status_code
            )
        return resp

    async def invite_user_by_email(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/invite",
            params={"redirect_to": redirect_to},
            json={"email": email},
        )
        logger.info("Sent invite e-mail to %s", email)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/admin/users/{user_id}")
        logger.info("Deleted auth user %s", user_id)


def get_supabase_admin() -> Optional[SupabaseAdmin]:
    """FastAPI dependency; None when the service-role credentials are missing."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        return None
    return SupabaseAdmin(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
