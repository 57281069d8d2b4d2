from venn_sky.platforms.bluesky.client import BlueskyClient, MemberPage

__all__ = ["BlueskyClient", "MemberPage"]
