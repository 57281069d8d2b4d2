from typing import Sequence

from venn_sky.models import OverlapResult, ProfileBasic


def compute_overlap(lists: Sequence[Sequence[ProfileBasic]]) -> OverlapResult:
    """Split N member lists into accounts shared by all and accounts unique to one.

    Membership counts each DID at most once per list, keeping the first entry
    seen as its representative. `overlapping` holds DIDs found in every list,
    in first-seen order across lists. `unique_to_each[i]` filters the raw
    list i (duplicates included) down to DIDs found in no other list.
    `counts[i]` is the raw length of list i.
    """
    if not lists:
        return OverlapResult()

    # did -> [representative profile, number of lists containing it]; dicts keep first-seen order
    occurrences: dict[str, list] = {}
    for members in lists:
        seen_here: set[str] = set()
        for profile in members:
            if profile.did in seen_here:
                continue
            seen_here.add(profile.did)
            if profile.did in occurrences:
                occurrences[profile.did][1] += 1
            else:
                occurrences[profile.did] = [profile, 1]

    overlapping = [profile for profile, count in occurrences.values() if count == len(lists)]
    unique_to_each = [
        [profile for profile in members if occurrences[profile.did][1] == 1]
        for members in lists
    ]
    counts = [len(members) for members in lists]

    return OverlapResult(overlapping=overlapping, unique_to_each=unique_to_each, counts=counts)
