"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from app.features.permissions.constants import ModuleType
from app.features.permissions.schemas import RoleResponse


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class UserInvite(UserBase):
    """Schema for inviting a new user into a role."""
    role_id: str = Field(..., description="Role to assign")
    language: str = Field("en", max_length=10)
    portfolio_ids: list[str] = Field(default_factory=list, description="Portfolios to grant for partial access")
    property_ids: list[str] = Field(default_factory=list, description="Properties to grant for partial access")


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    language: str
    is_active: bool
    user_role_id: str | None = None
    role: RoleResponse | None = None
    invited_by_id: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class ResourceAccessUpdate(BaseModel):
    """Resource ids per module, for granting, revoking or replacing access."""
    grants: dict[ModuleType, list[str]] = Field(..., description="Module -> resource ids")


class ResourceAccessResponse(BaseModel):
    """Current resource grants of a user."""
    user_id: str
    grants: dict[ModuleType, list[str]]
