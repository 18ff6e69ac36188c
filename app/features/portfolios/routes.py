"""
Portfolio management API routes.

Every route goes through the permission engine: lists are filtered to the
caller's accessible portfolios and single-portfolio routes are guarded by
resource-scoped checks.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.constants import ModuleType, PermissionAction
from app.features.permissions.dependencies import get_permission_service, require_permission
from app.features.permissions.schemas import UserPermissions
from app.features.permissions.service import PermissionService
from app.features.users.dependencies import get_current_user_permissions
from app.features.portfolios.models import Portfolio
from app.features.properties.models import Property
from app.features.portfolios.schemas import PortfolioCreate, PortfolioResponse, PortfolioUpdate
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def get_portfolio_or_404(db: AsyncSession, portfolio_id: str) -> Portfolio:
    portfolio = await db.scalar(
        select(Portfolio).where(Portfolio.id == portfolio_id)
    )
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio


@router.post("", response_model=PortfolioResponse, status_code=201)
async def create_portfolio(
    portfolio_data: PortfolioCreate,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PORTFOLIO, PermissionAction.CREATE))],
    service: Annotated[PermissionService, Depends(get_permission_service)],
    db: AsyncSession = Depends(get_db),
):
    """
    Create a portfolio.

    With partial portfolio access the creator is granted the new portfolio.
    """
    portfolio = Portfolio(**portfolio_data.model_dump(), created_by_id=current_user.id)
    db.add(portfolio)
    await db.flush()

    await service.grant_created_resource(current_user, ModuleType.PORTFOLIO, portfolio.id)

    await db.commit()
    await db.refresh(portfolio)
    log.info(f"Portfolio {portfolio.id} created by user {current_user.id}")
    return portfolio


@router.get("", response_model=list[PortfolioResponse])
async def list_portfolios(
    current_user: Annotated[UserPermissions, Depends(get_current_user_permissions)],
    service: Annotated[PermissionService, Depends(get_permission_service)],
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """List the portfolios the caller can read."""
    service.require_module_permission(current_user, ModuleType.PORTFOLIO, PermissionAction.READ)

    accessible = await service.get_accessible_resource_ids(current_user, ModuleType.PORTFOLIO)
    if accessible.is_empty:
        return []

    query = select(Portfolio).order_by(Portfolio.name)
    portfolio_ids = accessible.as_filter()
    if portfolio_ids is not None:
        query = query.where(Portfolio.id.in_(portfolio_ids))
    query = query.offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{portfolio_id}", response_model=PortfolioResponse)
async def get_portfolio(
    portfolio_id: str,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PORTFOLIO, PermissionAction.READ, "portfolio_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Retrieve a portfolio by its unique identifier."""
    return await get_portfolio_or_404(db, portfolio_id)


@router.patch("/{portfolio_id}", response_model=PortfolioResponse)
async def update_portfolio(
    portfolio_id: str,
    update_data: PortfolioUpdate,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PORTFOLIO, PermissionAction.UPDATE, "portfolio_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Update a portfolio's name or description."""
    portfolio = await get_portfolio_or_404(db, portfolio_id)

    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(portfolio, key, value)

    await db.commit()
    await db.refresh(portfolio)
    return portfolio


@router.delete("/{portfolio_id}", status_code=204)
async def delete_portfolio(
    portfolio_id: str,
    current_user: Annotated[UserPermissions, Depends(require_permission(ModuleType.PORTFOLIO, PermissionAction.DELETE, "portfolio_id"))],
    db: AsyncSession = Depends(get_db),
):
    """Delete a portfolio together with its properties."""
    portfolio = await get_portfolio_or_404(db, portfolio_id)
    await db.execute(delete(Property).where(Property.portfolio_id == portfolio_id))
    await db.delete(portfolio)
    await db.commit()
    log.info(f"Portfolio {portfolio_id} deleted by user {current_user.id}")
    return None
