"""User directory client — name/email lookups for response enrichment.

Lookups are best-effort: any failure degrades to a placeholder so a slow or
unavailable directory never fails a leave operation.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from hr_leave.common.constants import UNKNOWN_USER_NAME
from hr_leave.config import settings

logger = logging.getLogger(__name__)


class _DirectoryUser(BaseModel):
    """Shape of a directory record; unknown keys are ignored."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class UserDisplayInfo(BaseModel):
    name: str = UNKNOWN_USER_NAME
    email: Optional[str] = None


PLACEHOLDER = UserDisplayInfo()


class UserDirectory:
    """Reads ``GET {base_url}/users/{id}`` → ``{first_name, last_name, email}``.

    Results are memoised per instance, which lives for one request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._transport = transport
        self._cache: dict[uuid.UUID, UserDisplayInfo] = {}

    async def get_user_display_info(self, user_id: uuid.UUID) -> UserDisplayInfo:
        if user_id in self._cache:
            return self._cache[user_id]
        if not self.base_url:
            return PLACEHOLDER

        info = await self._fetch(user_id)
        self._cache[user_id] = info
        return info

    async def _fetch(self, user_id: uuid.UUID) -> UserDisplayInfo:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.get(f"{self.base_url}/users/{user_id}")
            if resp.status_code != 200:
                logger.warning(
                    "User directory returned %s for user %s", resp.status_code, user_id,
                )
                return PLACEHOLDER
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch user info for user %s: %s", user_id, exc)
            return PLACEHOLDER

        try:
            user = _DirectoryUser.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "User directory returned an unusable body for user %s (%d errors)",
                user_id, exc.error_count(),
            )
            return PLACEHOLDER

        name = " ".join(part for part in (user.first_name, user.last_name) if part)
        return UserDisplayInfo(
            name=name or user.name or UNKNOWN_USER_NAME,
            email=user.email,
        )


def get_user_directory() -> UserDirectory:
    """FastAPI dependency: a fresh per-request directory client."""
    return UserDirectory(
        settings.USER_DIRECTORY_URL,
        timeout=settings.USER_DIRECTORY_TIMEOUT,
    )
