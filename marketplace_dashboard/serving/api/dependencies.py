"""
API Dependencies

FastAPI dependencies that hand the dashboard its collaborators: the
caller's tenant context, the Redis-backed cache, the storage URL
resolver and the clock.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_dashboard.analytics.service import Clock, DashboardService, TenantContext, utcnow
from marketplace_dashboard.config import get_settings
from marketplace_dashboard.database.connection import get_db_dependency
from marketplace_dashboard.database.models import Brand
from marketplace_dashboard.serving.cache import CacheManager, get_redis
from marketplace_dashboard.serving.storage import StorageUrlResolver

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> dict:
    """Verify and decode a bearer token signed with the configured JWT secret"""
    security = get_settings().security
    return jwt.decode(
        token,
        security.jwt_secret_key.get_secret_value(),
        algorithms=[security.jwt_algorithm],
    )


async def find_user_brand(db: AsyncSession, user_id: str) -> Optional[str]:
    """Id of the first brand the user owns"""
    result = await db.execute(
        select(Brand.id)
        .where(Brand.user_id == user_id)
        .order_by(Brand.created_at, Brand.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_tenant_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_dependency),
) -> TenantContext:
    """
    Resolve the caller's brand and admin flag from the bearer token.

    Token claims:
        sub: user id
        roles: list of role names; the configured admin role grants
            platform-wide access
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("Rejected bearer token", error=str(e))
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Could not validate credentials")

    roles = payload.get("roles") or []
    is_admin = get_settings().security.admin_role in roles
    brand_id = await find_user_brand(db, str(user_id))

    return TenantContext(brand_id=brand_id, is_admin=is_admin)


def get_dashboard_cache() -> CacheManager:
    settings = get_settings()
    return CacheManager(
        "dashboard",
        default_ttl=settings.dashboard.cache_ttl_seconds,
        client=get_redis(),
    )


def get_storage() -> StorageUrlResolver:
    return StorageUrlResolver(get_settings().storage.base_url)


def get_clock() -> Clock:
    return utcnow


def get_dashboard_service(
    db: AsyncSession = Depends(get_db_dependency),
    cache: CacheManager = Depends(get_dashboard_cache),
    storage: StorageUrlResolver = Depends(get_storage),
    clock: Clock = Depends(get_clock),
) -> DashboardService:
    return DashboardService(
        db,
        cache,
        storage,
        settings=get_settings().dashboard,
        clock=clock,
    )
