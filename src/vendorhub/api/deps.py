"""API dependencies for authentication, database access and services."""

import hashlib
from typing import Annotated, Any

from cachetools import TTLCache
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.config import settings
from vendorhub.core.database import get_db
from vendorhub.core.security import decode_access_token
from vendorhub.services.group_order_service import GroupOrderService
from vendorhub.services.invitation_service import InvitationService
from vendorhub.services.notification_service import OrderNotifier, notifier
from vendorhub.services.order_service import OrderService
from vendorhub.services.product_service import ProductService
from vendorhub.services.wallet_service import WalletService

security = HTTPBearer()

# =============================================================================
# JWT payload caching
# Decoded payloads are cached briefly to skip HMAC verification on bursts
# =============================================================================
_jwt_cache: TTLCache = TTLCache(maxsize=10000, ttl=settings.JWT_CACHE_TTL)


def _decode_cached(token: str) -> dict[str, Any] | None:
    cache_key = hashlib.sha256(token.encode()).hexdigest()[:32]
    payload = _jwt_cache.get(cache_key)
    if payload is None:
        payload = decode_access_token(token)
        if payload is not None:
            _jwt_cache[cache_key] = payload
    return payload


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """Get the authenticated actor id from the bearer token.

    Users and their profiles live in the external auth service; the ``sub``
    claim is trusted as the actor id and only ownership checks happen here.

    Raises:
        HTTPException: If the token is invalid or carries no subject
    """
    payload = _decode_cached(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor_id = payload.get("sub")
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(actor_id)


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[str, Depends(get_current_actor)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Service dependency injection
# All services of a request share its session so nested atomic units join
# =============================================================================

def get_notifier() -> OrderNotifier:
    return notifier


async def get_product_service(db: DbSession) -> ProductService:
    return ProductService(db)


async def get_wallet_service(db: DbSession) -> WalletService:
    return WalletService(db)


async def get_order_service(
    db: DbSession,
    wallet_service: Annotated[WalletService, Depends(get_wallet_service)],
    order_notifier: Annotated[OrderNotifier, Depends(get_notifier)],
) -> OrderService:
    """Get OrderService instance with injected dependencies."""
    return OrderService(db, wallet_service=wallet_service, notifier=order_notifier)


async def get_group_order_service(
    db: DbSession,
    order_service: Annotated[OrderService, Depends(get_order_service)],
) -> GroupOrderService:
    """Get GroupOrderService instance with injected dependencies."""
    return GroupOrderService(db, order_service=order_service)


async def get_invitation_service(
    db: DbSession,
    group_order_service: Annotated[GroupOrderService, Depends(get_group_order_service)],
) -> InvitationService:
    return InvitationService(db, group_order_service=group_order_service)


ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
WalletServiceDep = Annotated[WalletService, Depends(get_wallet_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
GroupOrderServiceDep = Annotated[GroupOrderService, Depends(get_group_order_service)]
InvitationServiceDep = Annotated[InvitationService, Depends(get_invitation_service)]
