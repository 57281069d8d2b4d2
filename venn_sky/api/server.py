"""FastAPI server exposing account comparison as JSON endpoints."""
import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from venn_sky.cache import CacheStore
from venn_sky.fetchers.lists import FetchError, ListFetcher
from venn_sky.models import ComparisonReport, ListKind, ProfileSummary
from venn_sky.orchestrator import ComparisonError, compare_accounts
from venn_sky.platforms.bluesky.client import BlueskyClient

_log = logging.getLogger(__name__)

app = FastAPI(title="venn-sky API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

# ── Session cache + fetcher ──────────────────────────────────────────────────
# One cache per server process; it is the "session" the TTLs apply to.

_cache = CacheStore.from_env()
_fetcher: ListFetcher | None = None


def get_fetcher() -> ListFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = ListFetcher(BlueskyClient(), _cache)
    return _fetcher


def clear_all_cache() -> None:
    """Drop every cached list and profile."""
    _cache.clear_all()


@app.on_event("shutdown")
async def _close_client() -> None:
    global _fetcher
    if _fetcher is not None and isinstance(_fetcher.source, BlueskyClient):
        await _fetcher.source.aclose()
    _fetcher = None


# ── Endpoints ────────────────────────────────────────────────────────────────

class CompareRequest(BaseModel):
    handles: list[str] = Field(min_length=1)
    type: ListKind = "followers"


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/compare", response_model=ComparisonReport)
async def compare(req: CompareRequest):
    """Fetch every handle's list and return the overlap. Fails whole on the first bad handle."""
    try:
        return await compare_accounts(req.handles, req.type, get_fetcher())
    except ComparisonError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/api/profiles/{handle}", response_model=ProfileSummary)
async def get_profile(handle: str):
    try:
        return await get_fetcher().fetch_profile(handle)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to fetch profile for @{exc.handle}")


@app.delete("/api/cache")
def delete_cache():
    clear_all_cache()
    return {"cleared": True}
