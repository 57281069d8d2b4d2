"""Cache-aware retrieval of complete follower/following lists and profiles.

A list fetch walks the remote cursor until it runs out; there is no page cap
and no retry. Any failing page aborts the whole fetch with FetchError.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

from pydantic import TypeAdapter, ValidationError

from venn_sky.cache import CacheStore
from venn_sky.models import CacheType, ListKind, ProfileBasic, ProfileSummary
from venn_sky.platforms.bluesky.client import MemberPage

_log = logging.getLogger(__name__)

PAGE_SIZE = 100

_profiles = TypeAdapter(list[ProfileBasic])


class GraphSource(Protocol):
    """Remote graph API the fetcher pages through (BlueskyClient in production)."""

    async def list_members(
        self, kind: ListKind, actor: str, limit: int, cursor: str | None = None
    ) -> MemberPage:
        ...

    async def get_profile(self, actor: str) -> ProfileSummary:
        ...


class FetchError(Exception):
    """A list or profile request for one handle failed."""

    def __init__(self, handle: str, kind: CacheType, cause: BaseException) -> None:
        self.handle = handle
        self.kind = kind
        self.cause = cause
        super().__init__(f"Failed to fetch {kind} for {handle}: {cause}")


def normalize_handle(handle: str) -> str:
    """Strip whitespace and a leading '@'. Raises ValueError when nothing is left."""
    cleaned = handle.strip().lstrip("@")
    if not cleaned:
        raise ValueError("handle must be non-empty")
    return cleaned


class ListFetcher:
    """Fetches complete lists through a GraphSource, consulting a CacheStore first.

    Concurrent requests for the same (handle, type) share one in-flight task.
    """

    def __init__(self, source: GraphSource, cache: CacheStore, *, page_size: int = PAGE_SIZE) -> None:
        self.source = source
        self.cache = cache
        self.page_size = page_size
        self._in_flight: dict[tuple[str, CacheType], asyncio.Task] = {}

    async def fetch_all(self, handle: str, kind: ListKind) -> list[ProfileBasic]:
        """Return every account in handle's followers or following list."""
        handle = normalize_handle(handle)

        cached = self.cache.get(handle, kind)
        if cached is not None:
            try:
                members = _profiles.validate_python(cached)
            except ValidationError as exc:
                _log.warning("ignoring malformed cached %s for %s: %s", kind, handle, exc)
            else:
                _log.debug("cache hit: %s of %s (%d)", kind, handle, len(members))
                return members

        return await self._single_flight(handle, kind, lambda: self._fetch_pages(handle, kind))

    async def fetch_profile(self, handle: str) -> ProfileSummary:
        """Return display metadata for handle."""
        handle = normalize_handle(handle)

        cached = self.cache.get(handle, "profile")
        if cached is not None:
            try:
                return ProfileSummary.model_validate(cached)
            except ValidationError as exc:
                _log.warning("ignoring malformed cached profile for %s: %s", handle, exc)

        return await self._single_flight(handle, "profile", lambda: self._fetch_profile(handle))

    async def _single_flight(
        self, handle: str, type_: CacheType, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        key = (handle.lower(), type_)

        def _done(t: asyncio.Task) -> None:
            self._in_flight.pop(key, None)
            # waiters may all have been cancelled; mark a failure as retrieved
            if not t.cancelled():
                t.exception()

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(_done)
        else:
            _log.debug("joining in-flight fetch: %s of %s", type_, handle)
        return await asyncio.shield(task)

    async def _fetch_pages(self, handle: str, kind: ListKind) -> list[ProfileBasic]:
        members: list[ProfileBasic] = []
        cursor: str | None = None
        pages = 0
        try:
            while True:
                page = await self.source.list_members(kind, handle, self.page_size, cursor)
                members.extend(page.items)
                pages += 1
                _log.debug("%s of %s: page %d, %d so far", kind, handle, pages, len(members))
                cursor = page.cursor
                if not cursor:
                    break
        except Exception as exc:
            _log.warning("fetching %s for %s failed on page %d: %s", kind, handle, pages + 1, exc)
            raise FetchError(handle, kind, exc) from exc

        _log.info("fetched %d %s for %s in %d pages", len(members), kind, handle, pages)
        self.cache.set(handle, kind, [m.model_dump(mode="json", by_alias=True) for m in members])
        return members

    async def _fetch_profile(self, handle: str) -> ProfileSummary:
        try:
            profile = await self.source.get_profile(handle)
        except Exception as exc:
            _log.warning("fetching profile for %s failed: %s", handle, exc)
            raise FetchError(handle, "profile", exc) from exc

        self.cache.set(handle, "profile", profile.model_dump(mode="json", by_alias=True))
        return profile
