"""Pydantic schemas for account holders."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class AccountHolderCreate(BaseModel):
    """Schema for creating an account holder."""

    name: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class AccountHolderResponse(BaseModel):
    """Schema for AccountHolder API response."""

    id: str
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
