"""Thin async client for the public Bluesky AppView XRPC endpoints."""
from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from pydantic import BaseModel

from venn_sky.models import ListKind, ProfileBasic, ProfileSummary

_log = logging.getLogger(__name__)

DEFAULT_APPVIEW_URL = "https://public.api.bsky.app"

# kind -> (XRPC method, response key holding the page items)
_LIST_METHODS: dict[str, tuple[str, str]] = {
    "followers": ("app.bsky.graph.getFollowers", "followers"),
    "following": ("app.bsky.graph.getFollows", "follows"),
}


class MemberPage(BaseModel):
    items: list[ProfileBasic]
    cursor: str | None = None


class BlueskyClient:
    """Calls getFollowers / getFollows / getProfile on an AppView.

    Uses BSKY_APPVIEW_URL and VENN_SKY_HTTP_TIMEOUT when no explicit values
    are passed. Pass ``transport`` to route requests elsewhere (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = (base_url or os.getenv("BSKY_APPVIEW_URL") or DEFAULT_APPVIEW_URL).rstrip("/")
        if timeout is None:
            timeout = float(os.getenv("VENN_SKY_HTTP_TIMEOUT", "30"))
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "BlueskyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _xrpc(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        _log.debug("GET %s %s", method, params)
        resp = await self._http.get(f"/xrpc/{method}", params=params)
        resp.raise_for_status()
        return resp.json()

    async def list_members(
        self,
        kind: ListKind,
        actor: str,
        limit: int,
        cursor: str | None = None,
    ) -> MemberPage:
        """Fetch one page of followers or follows for actor."""
        method, items_key = _LIST_METHODS[kind]
        params: dict[str, Any] = {"actor": actor, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        data = await self._xrpc(method, params)
        return MemberPage(items=data.get(items_key, []), cursor=data.get("cursor"))

    async def get_profile(self, actor: str) -> ProfileSummary:
        data = await self._xrpc("app.bsky.actor.getProfile", {"actor": actor})
        return ProfileSummary.model_validate(data)
