"""Invite Schemas — Pydantic models for issuance, redemption and revocation payloads.

Invariants:
    - IssueRequest limits are optional; omitted values are filled by issuance policy
    - Human codes and short codes are stripped and uppercased at the boundary
    - Listing rows carry join_url (never the bare token) for links

Design Decisions:
    - Literal for kind over the str Enum: Pydantic handles validation natively
    - field_validator for side-effect-free transforms (strip/upper) — keeps models pure
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class IssueRequest(BaseModel):
    """Issuance request — `{kind, expiry_minutes?, max_uses?}`."""
    kind: Literal["code", "link"]
    expiry_minutes: int | None = Field(None, ge=1, le=60 * 24 * 30)
    max_uses: int | None = Field(None, ge=1, le=1000)


class IssuedCodeResponse(BaseModel):
    id: UUID
    kind: Literal["code"] = "code"
    human_code: str
    expires_at: datetime
    max_uses: int


class IssuedLinkResponse(BaseModel):
    id: UUID
    kind: Literal["link"] = "link"
    token: str
    short_code: str
    join_url: str
    expires_at: datetime
    max_uses: int


class CredentialSummary(BaseModel):
    """Listing row — what a kitchen manager sees."""
    id: UUID
    kind: Literal["code", "link"]
    human_code: str | None = None
    short_code: str | None = None
    join_url: str | None = None
    issued_by: UUID | None = None
    created_at: datetime
    expires_at: datetime
    max_uses: int
    current_uses: int
    remaining_uses: int
    time_remaining: str
    revoked: bool


class RevokeResponse(BaseModel):
    id: UUID
    status: Literal["revoked", "already_revoked"]


class CodeRedeemRequest(BaseModel):
    """Join-by-code — kitchen_id optional (disambiguated server-side)."""
    human_code: str = Field(min_length=4, max_length=32)
    kitchen_id: UUID | None = None

    @field_validator("human_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.replace("-", "").replace(" ", "").strip().upper()
        if not v:
            raise ValueError("human_code cannot be empty or whitespace")
        return v


class ShortCodeResolveRequest(BaseModel):
    short_code: str = Field(min_length=6, max_length=16)

    @field_validator("short_code")
    @classmethod
    def normalize_short_code(cls, v: str) -> str:
        v = "".join(v.split()).replace("-", "").upper()
        if len(v) < 6:
            raise ValueError("short_code must have 6 characters")
        return v


class ShortCodeResolveResponse(BaseModel):
    token: str
    join_url: str
    expires_at: datetime


class MembershipResponse(BaseModel):
    kitchen_id: UUID
    user_id: UUID
    role: Literal["owner", "admin", "member"]
    can_invite: bool
    created_at: datetime


class RedeemResponse(BaseModel):
    outcome: Literal["joined", "already_member"]
    membership: MembershipResponse


class InvitePreviewResponse(BaseModel):
    """Pre-flight view for join screens. May be stale."""
    kitchen_id: UUID
    kitchen_name: str | None = None
    kind: Literal["code", "link"]
    status: Literal["valid", "revoked", "expired", "use_limit_reached"]
    expires_at: datetime
    time_remaining: str
    remaining_uses: int
