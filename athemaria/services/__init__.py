"""Services package for Athemaria"""

from .errors import (
    AthemariaError,
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    AuthError,
)
from .logger import AthemariaLogger, init_logger
from .firestore import FirestoreService
from .blob_storage import BlobStorageService, cover_path, avatar_path
from .auth import AuthService, AuthenticatedUser, AuthSession
from .moderation import ModerationService

__all__ = [
    "AthemariaError",
    "StorageError",
    "NotFoundError",
    "PermissionDeniedError",
    "AuthError",
    "AthemariaLogger",
    "init_logger",
    "FirestoreService",
    "BlobStorageService",
    "cover_path",
    "avatar_path",
    "AuthService",
    "AuthenticatedUser",
    "AuthSession",
    "ModerationService",
]
