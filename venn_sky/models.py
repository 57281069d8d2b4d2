from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ListKind = Literal["followers", "following"]
CacheType = Literal["followers", "following", "profile"]


class ProfileBasic(BaseModel):
    """One account as it appears in a follower/following list. The DID is its identity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    did: str
    handle: str
    display_name: str | None = Field(default=None, alias="displayName")
    avatar: str | None = None


class ProfileSummary(BaseModel):
    """Display metadata for a compared account; never used for overlap math."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    handle: str
    did: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    avatar: str | None = None
    followers_count: int | None = Field(default=None, alias="followersCount")
    follows_count: int | None = Field(default=None, alias="followsCount")


class OverlapResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    overlapping: list[ProfileBasic] = []
    unique_to_each: list[list[ProfileBasic]] = []
    counts: list[int] = []


class AccountData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    handle: str
    profile: ProfileSummary
    members: list[ProfileBasic]


class ComparisonReport(BaseModel):
    """Serialised with camelCase keys, matching the AppView profile fields it embeds."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: ListKind
    users: list[AccountData]
    overlap: OverlapResult
