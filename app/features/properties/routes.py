"""
Property management API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.constants import ModuleType, PermissionAction
from app.features.permissions.dependencies import get_permission_service, require_permission
from app.features.permissions.exceptions import AuthorizationError
from app.features.permissions.schemas import UserPermissions
from app.features.permissions.service import PermissionService
from app.features.permissions.utils import (
    can_request_bulk_property_transfer,
    can_request_property_delete,
    can_request_property_transfer,
)
from app.features.portfolios.models import Portfolio
from app.features.properties.models import Property
from app.features.properties.schemas import (
    BulkPropertyTransfer,
    PropertyCreate,
    PropertyRequestEligibility,
    PropertyResponse,
    PropertyTransfer,
    PropertyUpdate,
)
from app.features.users.dependencies import get_current_user_permissions
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

CurrentUser = Annotated[UserPermissions, Depends(get_current_user_permissions)]
Service = Annotated[PermissionService, Depends(get_permission_service)]


async def get_property_or_404(db: AsyncSession, property_id: str) -> Property:
    prop = await db.scalar(
        select(Property).where(Property.id == property_id)
    )
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


async def ensure_portfolio_exists(db: AsyncSession, portfolio_id: str) -> None:
    portfolio = await db.scalar(select(Portfolio.id).where(Portfolio.id == portfolio_id))
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")


@router.post("", response_model=PropertyResponse, status_code=201)
async def create_property(
    property_data: PropertyCreate,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PROPERTY, PermissionAction.CREATE))],
    service: Service,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a property inside a portfolio the caller can reach.

    With partial property access the creator is granted the new property.
    """
    await service.require_permission(
        current_user, ModuleType.PORTFOLIO, PermissionAction.READ, property_data.portfolio_id
    )
    await ensure_portfolio_exists(db, property_data.portfolio_id)

    prop = Property(**property_data.model_dump(), created_by_id=current_user.id)
    db.add(prop)
    await db.flush()

    await service.grant_created_resource(current_user, ModuleType.PROPERTY, prop.id)

    await db.commit()
    await db.refresh(prop)
    log.info(f"Property {prop.id} created in portfolio {prop.portfolio_id} by user {current_user.id}")
    return prop


@router.get("", response_model=list[PropertyResponse])
async def list_properties(
    current_user: CurrentUser,
    service: Service,
    portfolio_id: str | None = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """
    List the properties the caller can read, optionally within one portfolio.
    """
    service.require_module_permission(current_user, ModuleType.PROPERTY, PermissionAction.READ)

    accessible = await service.get_accessible_resource_ids(current_user, ModuleType.PROPERTY)
    if accessible.is_empty:
        return []

    query = select(Property).order_by(Property.name)
    property_ids = accessible.as_filter()
    if property_ids is not None:
        query = query.where(Property.id.in_(property_ids))
    if portfolio_id:
        query = query.where(Property.portfolio_id == portfolio_id)
    query = query.offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/request-eligibility", response_model=PropertyRequestEligibility)
async def get_request_eligibility(current_user: CurrentUser):
    """Which property transfer and delete requests the caller may raise."""
    return PropertyRequestEligibility(
        transfer=can_request_property_transfer(current_user),
        bulk_transfer=can_request_bulk_property_transfer(current_user),
        delete=can_request_property_delete(current_user),
    )


@router.post("/transfer", response_model=list[PropertyResponse])
async def bulk_transfer_properties(
    transfer: BulkPropertyTransfer,
    current_user: CurrentUser,
    service: Service,
    db: AsyncSession = Depends(get_db),
):
    """Move several properties to another portfolio."""
    if not can_request_bulk_property_transfer(current_user):
        raise AuthorizationError("Bulk property transfer requires full permission on the property module")

    await service.require_permission(
        current_user, ModuleType.PORTFOLIO, PermissionAction.READ, transfer.target_portfolio_id
    )
    await ensure_portfolio_exists(db, transfer.target_portfolio_id)

    accessible = await service.get_accessible_resource_ids(current_user, ModuleType.PROPERTY)
    properties = []
    for property_id in dict.fromkeys(transfer.property_ids):
        await service.require_permission(
            current_user, ModuleType.PROPERTY, PermissionAction.UPDATE, property_id, accessible
        )
        properties.append(await get_property_or_404(db, property_id))

    for prop in properties:
        prop.portfolio_id = transfer.target_portfolio_id

    await db.commit()
    for prop in properties:
        await db.refresh(prop)

    log.info(
        f"{len(properties)} properties moved to portfolio {transfer.target_portfolio_id} "
        f"by user {current_user.id}"
    )
    return properties


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: str,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PROPERTY, PermissionAction.READ, "property_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Retrieve a property by its unique identifier."""
    return await get_property_or_404(db, property_id)


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: str,
    update_data: PropertyUpdate,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PROPERTY, PermissionAction.UPDATE, "property_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Update a property's details."""
    prop = await get_property_or_404(db, property_id)

    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(prop, key, value)

    await db.commit()
    await db.refresh(prop)
    return prop


@router.post("/{property_id}/transfer", response_model=PropertyResponse)
async def transfer_property(
    property_id: str,
    transfer: PropertyTransfer,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PROPERTY, PermissionAction.UPDATE, "property_id"))],
    service: Service,
    db: AsyncSession = Depends(get_db),
):
    """Move a property to another portfolio."""
    if not can_request_property_transfer(current_user):
        raise AuthorizationError("Property transfer requires update permission on the property module")

    await service.require_permission(
        current_user, ModuleType.PORTFOLIO, PermissionAction.READ, transfer.target_portfolio_id
    )
    await ensure_portfolio_exists(db, transfer.target_portfolio_id)

    prop = await get_property_or_404(db, property_id)
    prop.portfolio_id = transfer.target_portfolio_id

    await db.commit()
    await db.refresh(prop)
    log.info(f"Property {property_id} moved to portfolio {transfer.target_portfolio_id} by user {current_user.id}")
    return prop


@router.delete("/{property_id}", status_code=204)
async def delete_property(
    property_id: str,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PROPERTY, PermissionAction.DELETE, "property_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Delete a property."""
    prop = await get_property_or_404(db, property_id)
    await db.delete(prop)
    await db.commit()
    log.info(f"Property {property_id} deleted by user {current_user.id}")
    return None
