"""Kitchen Schemas — bootstrap request and response.

Invariants:
    - KitchenCreate.name: 1-120 chars, stripped, non-empty
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from kitchenpass.schemas.invites import MembershipResponse


class KitchenCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty or whitespace")
        return v


class KitchenResponse(BaseModel):
    id: UUID
    name: str
    owner_id: UUID
    created_at: datetime
    membership: MembershipResponse
