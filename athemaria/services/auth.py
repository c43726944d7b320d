"""
Firebase Authentication wrapper for Athemaria.

Account creation and ID-token verification go through the Admin SDK.
Email/password sign-in and the password-reset flow have no Admin SDK
equivalent, so they call the Identity Toolkit REST API with the project's
web API key.
"""

from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from pydantic import BaseModel
from typing import Optional, Dict, Any
import asyncio
import logging
import requests

from athemaria.services.errors import AuthError

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Provider codes that mean "bad credentials" (401) rather than a bad request (400)
UNAUTHORIZED_CODES = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "USER_DISABLED",
}


class AuthenticatedUser(BaseModel):
    """The caller behind a verified ID token"""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class AuthSession(BaseModel):
    """Tokens returned by a successful sign-in"""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    id_token: str
    refresh_token: str
    expires_in: int = 3600


class AuthService:
    """Login, signup, password reset and token verification."""

    def __init__(self, api_key: str = "", admin_uid: str = "", timeout: int = 30, app=None):
        """
        Args:
            api_key: Firebase web API key (Identity Toolkit REST calls)
            admin_uid: The single account allowed into the admin dashboard
            timeout: HTTP timeout in seconds for REST calls
            app: Optional firebase_admin App (defaults to the default app)
        """
        self.api_key = api_key
        # Provisional: one hardcoded admin identity until roles exist
        self.admin_uid = admin_uid
        self.timeout = timeout
        self.app = app

    def is_admin(self, user: Optional[AuthenticatedUser]) -> bool:
        return bool(user and self.admin_uid and user.uid == self.admin_uid)

    async def _run_sync(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to an Identity Toolkit endpoint and return the JSON body."""
        if not self.api_key:
            raise AuthError("Firebase API key is not configured", code="CONFIGURATION_ERROR")

        try:
            response = requests.post(
                f"{IDENTITY_TOOLKIT_URL}/{endpoint}",
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Identity Toolkit request {endpoint} failed: {e}")
            raise AuthError("Authentication service unavailable", code="UNAVAILABLE") from e

        if response.status_code == 200:
            return response.json()

        # Error bodies look like {"error": {"message": "EMAIL_NOT_FOUND", ...}}
        try:
            code = response.json().get("error", {}).get("message", "UNKNOWN")
        except ValueError:
            code = "UNKNOWN"
        logger.warning(f"Identity Toolkit {endpoint} rejected request: {code}")
        raise AuthError(_friendly_message(code), code=code)

    async def signup(self, email: str, password: str, display_name: str) -> AuthenticatedUser:
        """
        Create an email/password account with a display name.

        The profile document is not created here; it is created on the
        user's first profile save.
        """
        try:
            record = await self._run_sync(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
                app=self.app
            )
        except (ValueError, FirebaseError) as e:
            code = getattr(e, "code", None)
            logger.warning(f"Signup failed for {email}: {e}")
            raise AuthError(str(e) or "Failed to create account", code=code) from e

        logger.info(f"Created account {record.uid}")
        return AuthenticatedUser(uid=record.uid, email=record.email, display_name=record.display_name)

    async def login(self, email: str, password: str) -> AuthSession:
        data = await self._run_sync(
            self._post,
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True}
        )
        return AuthSession(
            uid=data["localId"],
            email=data.get("email"),
            display_name=data.get("displayName") or None,
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_in=int(data.get("expiresIn", 3600)),
        )

    async def send_password_reset_email(self, email: str) -> None:
        await self._run_sync(
            self._post,
            "accounts:sendOobCode",
            {"requestType": "PASSWORD_RESET", "email": email}
        )

    async def confirm_password_reset(self, oob_code: str, new_password: str) -> Optional[str]:
        """
        Set a new password using the one-time code from the reset email.

        Returns:
            The account's email address
        """
        data = await self._run_sync(
            self._post,
            "accounts:resetPassword",
            {"oobCode": oob_code, "newPassword": new_password}
        )
        return data.get("email")

    async def verify_token(self, id_token: str) -> AuthenticatedUser:
        """
        Verify a Firebase ID token.

        Raises:
            AuthError: the token is malformed, expired, revoked or forged
        """
        try:
            claims = await self._run_sync(auth.verify_id_token, id_token, app=self.app)
        except (ValueError, FirebaseError) as e:
            raise AuthError("Invalid or expired authentication token", code=getattr(e, "code", None)) from e

        return AuthenticatedUser(
            uid=claims["uid"],
            email=claims.get("email"),
            display_name=claims.get("name"),
        )


def _friendly_message(code: str) -> str:
    messages = {
        "EMAIL_NOT_FOUND": "Invalid email or password",
        "INVALID_PASSWORD": "Invalid email or password",
        "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
        "USER_DISABLED": "This account has been disabled",
        "EXPIRED_OOB_CODE": "The password reset link has expired",
        "INVALID_OOB_CODE": "The password reset link is invalid",
    }
    # Codes can carry a suffix, e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    return messages.get(code.split(" ")[0], code)
