"""Pydantic schemas for webhook payloads, responses and platform records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasPath, BaseModel, ConfigDict, Field

from .codec import Claim, MetadataEntry


class Session(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str | None = Field(default=None, validation_alias=AliasPath("factors", "user", "id"))
    created_at: datetime | None = Field(default=None, validation_alias="creationDate")


class UserProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    given_name: str | None = Field(default=None, alias="givenName")
    family_name: str | None = Field(default=None, alias="familyName")


class UserEmail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    is_verified: bool = Field(default=False, alias="isVerified")


class UserRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    username: str | None = None
    profile: UserProfile = Field(default_factory=UserProfile, validation_alias=AliasPath("human", "profile"))
    email: UserEmail = Field(default_factory=UserEmail, validation_alias=AliasPath("human", "email"))


# Inbound payloads. Extra fields sent by the platform are ignored.


class UniqueSessionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(alias="userID", min_length=1)


class ActionUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)


class PreAccessTokenPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user: ActionUser
    # Raw records; malformed ones are skipped during claim derivation.
    user_metadata: list[Any] | None = None


class FederatedClaimsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(alias="userID", min_length=1)
    claims: dict[str, str]


class ObservedResponsePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    response: dict[str, Any]


# Responses


class SessionCleanupOut(BaseModel):
    status: str = "Session cleanup complete"
    kept: str | None
    deleted: list[str]


class ClaimsOut(BaseModel):
    append_claims: list[Claim]


class MetadataOut(BaseModel):
    set_user_metadata: list[MetadataEntry]
