"""
Pydantic schemas for team requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from orgaccess.utils import ensure_utc


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    organization_id: str


class TeamUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class TeamMemberRequest(BaseModel):
    member_id: str


class TeamResponse(BaseModel):
    id: str
    name: str
    organization_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
