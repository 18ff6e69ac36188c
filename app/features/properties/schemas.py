"""
Pydantic schemas for Property API requests/responses.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, ConfigDict, field_validator


class PropertyBase(BaseModel):
    """Base schema for property."""
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    owner_name: str | None = Field(None, max_length=255)


class PropertyCreate(PropertyBase):
    """Schema for creating a property."""
    portfolio_id: str


class PropertyUpdate(BaseModel):
    """Schema for updating a property."""
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    owner_name: str | None = Field(None, max_length=255)

    @field_validator("name", mode="before")
    @classmethod
    def name_not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Property name may be omitted but not null")
        return v


class PropertyResponse(PropertyBase):
    """Schema for property response."""
    id: str
    portfolio_id: str
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyTransfer(BaseModel):
    """Move one property to another portfolio."""
    target_portfolio_id: str


class BulkPropertyTransfer(BaseModel):
    """Move several properties to another portfolio at once."""
    property_ids: list[str] = Field(..., min_length=1)
    target_portfolio_id: str


class PropertyRequestEligibility(BaseModel):
    """Which property requests the current user may raise."""
    transfer: bool
    bulk_transfer: bool
    delete: bool
