"""
Pydantic schemas for Portfolio API requests/responses.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, ConfigDict, field_validator


class PortfolioBase(BaseModel):
    """Base schema for portfolio."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class PortfolioCreate(PortfolioBase):
    """Schema for creating a portfolio."""
    pass


class PortfolioUpdate(BaseModel):
    """Schema for updating a portfolio."""
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def name_not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Portfolio name may be omitted but not null")
        return v


class PortfolioResponse(PortfolioBase):
    """Schema for portfolio response."""
    id: str
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
