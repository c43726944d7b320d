"""
Exceptions raised by Athemaria services.

The API layer maps these onto HTTP status codes; scripts let them propagate
to the top-level handler.
"""

from typing import Optional


class AthemariaError(Exception):
    """Base class for service errors"""


class StorageError(AthemariaError):
    """A Firestore or blob storage call failed. The SDK error is chained."""


class NotFoundError(AthemariaError):
    """The requested document does not exist"""


class PermissionDeniedError(AthemariaError):
    """The caller does not own the document they tried to change"""


class AuthError(AthemariaError):
    """The identity provider rejected a request"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
