"""Batch comparison: fetch every handle, then compute the overlap."""
import logging
from typing import Iterable

from venn_sky.analyzers.overlap import compute_overlap
from venn_sky.fetchers.lists import FetchError, ListFetcher
from venn_sky.models import AccountData, ComparisonReport, ListKind

_log = logging.getLogger(__name__)

MIN_HANDLES = 2
MAX_HANDLES = 5


class ComparisonError(Exception):
    """A comparison could not be produced; the message is safe to show users."""


async def compare_accounts(
    handles: Iterable[str],
    kind: ListKind,
    fetcher: ListFetcher,
) -> ComparisonReport:
    """Fetch profile + list for each handle in order and compare the lists.

    The first handle that fails aborts the whole batch; no partial result is
    returned.
    """
    wanted = [h.strip().lstrip("@") for h in handles if h.strip().lstrip("@")]
    if len(wanted) < MIN_HANDLES:
        raise ComparisonError(f"Please enter at least {MIN_HANDLES} Bluesky handles")
    if len(wanted) > MAX_HANDLES:
        raise ComparisonError(f"You can compare at most {MAX_HANDLES} Bluesky handles")

    users: list[AccountData] = []
    for handle in wanted:
        try:
            profile = await fetcher.fetch_profile(handle)
            members = await fetcher.fetch_all(handle, kind)
        except FetchError as exc:
            _log.error("aborting comparison of %d handles: %s", len(wanted), exc)
            raise ComparisonError(f"Failed to fetch data for @{handle}") from exc
        users.append(AccountData(handle=handle, profile=profile, members=members))

    overlap = compute_overlap([u.members for u in users])
    _log.info(
        "compared %s of %s: %d overlapping",
        kind, ", ".join(wanted), len(overlap.overlapping),
    )
    return ComparisonReport(kind=kind, users=users, overlap=overlap)
