"""
Resource grant stores.

The permission service depends on the ResourceGrantStore protocol only, so it
can run against the database in the app and against an in-memory store in
tests and scripts.
"""
from typing import Protocol
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.constants import ModuleType, resolve_module
from app.features.permissions.exceptions import GrantStoreError
from app.features.permissions.models import ResourceGrant
from app.utils import get_logger


log = get_logger(__name__)


class ResourceGrantStore(Protocol):
    """Per-user, per-module lists of granted resource ids."""

    async def get_resource_ids(self, user_id: str, module: ModuleType) -> list[str]:
        ...

    async def add_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        ...

    async def revoke_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        ...

    async def replace_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        ...

    async def clear(self, user_id: str) -> None:
        ...


def _module_key(module: ModuleType | str) -> str:
    owner = resolve_module(module)
    if owner is None:
        raise ValueError(f"Unknown module: {module}")
    return owner.value


def _merge(existing: list[str], new_ids: list[str]) -> list[str]:
    """Union keeping first-seen order."""
    return list(dict.fromkeys([*existing, *new_ids]))


def _without(existing: list[str], removed: list[str]) -> list[str]:
    removed_set = set(removed)
    return [resource_id for resource_id in existing if resource_id not in removed_set]


class SqlResourceGrantStore:
    """
    Grant store backed by the resource_grants table.

    Writes are flushed, not committed; the request's session commits them.
    Database errors are raised as GrantStoreError.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_grant(self, user_id: str, module: str) -> ResourceGrant | None:
        result = await self.db.execute(
            select(ResourceGrant).where(
                ResourceGrant.user_id == user_id,
                ResourceGrant.module == module,
            )
        )
        return result.scalar_one_or_none()

    async def _write(
        self, grant: ResourceGrant | None, user_id: str, module: str, resource_ids: list[str]
    ) -> list[str]:
        """Upsert the row already loaded by the caller."""
        if grant is None:
            grant = ResourceGrant(user_id=user_id, module=module, resource_ids=resource_ids)
            self.db.add(grant)
        else:
            # Reassign so the JSON column is marked dirty
            grant.resource_ids = resource_ids
        await self.db.flush()
        return resource_ids

    async def get_resource_ids(self, user_id: str, module: ModuleType) -> list[str]:
        key = _module_key(module)
        try:
            grant = await self._get_grant(user_id, key)
        except SQLAlchemyError as e:
            log.error(f"Failed to load {key} grants for user {user_id}", exc_info=True)
            raise GrantStoreError(f"Could not load {key} grants for user {user_id}") from e

        if grant is None:
            return []
        return list(grant.resource_ids or [])

    async def add_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = _module_key(module)
        try:
            grant = await self._get_grant(user_id, key)
            existing = list(grant.resource_ids or []) if grant else []
            updated = await self._write(grant, user_id, key, _merge(existing, resource_ids))
        except SQLAlchemyError as e:
            log.error(f"Failed to grant {key} access for user {user_id}", exc_info=True)
            raise GrantStoreError(f"Could not grant {key} access for user {user_id}") from e

        log.info(f"Granted {key} access: user={user_id} ids={resource_ids}")
        return updated

    async def revoke_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = _module_key(module)
        try:
            grant = await self._get_grant(user_id, key)
            if grant is None:
                return []
            updated = await self._write(grant, user_id, key, _without(list(grant.resource_ids or []), resource_ids))
        except SQLAlchemyError as e:
            log.error(f"Failed to revoke {key} access for user {user_id}", exc_info=True)
            raise GrantStoreError(f"Could not revoke {key} access for user {user_id}") from e

        log.info(f"Revoked {key} access: user={user_id} ids={resource_ids}")
        return updated

    async def replace_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = _module_key(module)
        try:
            grant = await self._get_grant(user_id, key)
            updated = await self._write(grant, user_id, key, list(dict.fromkeys(resource_ids)))
        except SQLAlchemyError as e:
            log.error(f"Failed to replace {key} access for user {user_id}", exc_info=True)
            raise GrantStoreError(f"Could not replace {key} access for user {user_id}") from e

        log.info(f"Replaced {key} access: user={user_id} count={len(updated)}")
        return updated

    async def clear(self, user_id: str) -> None:
        try:
            await self.db.execute(delete(ResourceGrant).where(ResourceGrant.user_id == user_id))
            await self.db.flush()
        except SQLAlchemyError as e:
            log.error(f"Failed to clear grants for user {user_id}", exc_info=True)
            raise GrantStoreError(f"Could not clear grants for user {user_id}") from e

        log.info(f"Cleared all grants for user {user_id}")


class InMemoryResourceGrantStore:
    """Dictionary-backed grant store."""

    def __init__(self, grants: dict[tuple[str, str], list[str]] | None = None):
        self._grants: dict[tuple[str, str], list[str]] = {}
        for (user_id, module), resource_ids in (grants or {}).items():
            self._grants[(user_id, _module_key(module))] = list(resource_ids)

    async def get_resource_ids(self, user_id: str, module: ModuleType) -> list[str]:
        return list(self._grants.get((user_id, _module_key(module)), []))

    async def add_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = (user_id, _module_key(module))
        self._grants[key] = _merge(self._grants.get(key, []), resource_ids)
        return list(self._grants[key])

    async def revoke_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = (user_id, _module_key(module))
        if key not in self._grants:
            return []
        self._grants[key] = _without(self._grants[key], resource_ids)
        return list(self._grants[key])

    async def replace_resource_ids(self, user_id: str, module: ModuleType, resource_ids: list[str]) -> list[str]:
        key = (user_id, _module_key(module))
        self._grants[key] = list(dict.fromkeys(resource_ids))
        return list(self._grants[key])

    async def clear(self, user_id: str) -> None:
        for key in [key for key in self._grants if key[0] == user_id]:
            del self._grants[key]
