"""
FastAPI dependencies: application services and the authenticated caller.

Services are built once in the app lifespan and stored on `app.state`;
endpoints receive them through `get_services` instead of module globals.
"""

from dataclasses import dataclass
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from athemaria.config import Settings
from athemaria.services import (
    AthemariaLogger,
    AuthError,
    AuthService,
    AuthenticatedUser,
    BlobStorageService,
    FirestoreService,
    ModerationService,
)

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AppServices:
    """Everything an endpoint may need, wired together at startup"""
    settings: Settings
    store: FirestoreService
    auth: AuthService
    moderation: ModerationService
    blob_storage: Optional[BlobStorageService] = None
    logger: Optional[AthemariaLogger] = None

    def shutdown(self):
        self.store.shutdown()
        if self.blob_storage:
            self.blob_storage.shutdown()


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=500, detail="Services not initialized")
    return services


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: AppServices = Depends(get_services),
) -> Optional[AuthenticatedUser]:
    """The caller if a valid bearer token was sent, else None."""
    if credentials is None:
        return None
    try:
        return await services.auth.verify_token(credentials.credentials)
    except AuthError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: AppServices = Depends(get_services),
) -> AuthenticatedUser:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await services.auth.verify_token(credentials.credentials)
    except AuthError as e:
        logger.info(f"Rejected bearer token: {e.code or e}")
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> AuthenticatedUser:
    if not services.auth.is_admin(user):
        logger.warning(f"Non-admin user {user.uid} tried to reach an admin endpoint")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
