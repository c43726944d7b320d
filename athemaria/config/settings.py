"""
Configuration management for Athemaria

Loads environment variables and provides application settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional, Dict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Athemaria"
    port: int = 3000
    log_level: str = "INFO"
    debug: bool = False  # Detailed event lines from AthemariaLogger

    # CORS Configuration
    # Default "*" allows all origins (suitable for development)
    # For production, set to comma-separated list:
    #   CORS_ALLOWED_ORIGINS=https://athemaria.app,https://www.athemaria.app
    cors_allowed_origins: str = "*"

    # =========================================================================
    # Firebase Configuration
    # Firestore holds every collection; Firebase Authentication is the
    # identity provider.
    # =========================================================================
    firebase_project_id: Optional[str] = None
    # Web API key, required for the Identity Toolkit REST endpoints
    # (password sign-in and password reset codes are not in the Admin SDK)
    firebase_api_key: Optional[str] = None
    google_application_credentials: Optional[str] = None

    # Firebase Service Account (optional - for direct credential usage)
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_private_key_id: Optional[str] = None

    # =========================================================================
    # Azure Blob Storage Configuration
    # Story covers, avatars and the placeholder cover
    # =========================================================================
    azure_blob_connection_string: Optional[str] = None
    azure_blob_container: str = "athemaria-media"
    default_cover_path: str = "placeholders/cover.png"
    # Used when blob storage is not configured
    default_cover_url: str = "/assets/cover.png"

    # =========================================================================
    # Moderation
    # =========================================================================
    # Hardcoded admin identity. Provisional: replace with a role claim on the
    # user's token before going to production.
    admin_uid: str = ""
    purge_retention_days: int = 30

    # Debug Configuration
    debug_storage: bool = False  # Log Firestore/blob operations to JSONL
    debug_log_dir: str = "logs/debug"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def get_firebase_credentials_dict(self) -> Optional[Dict]:
        """
        Get Firebase credentials as a dict from environment variables.

        Returns None if credentials are not available.
        """
        if self.firebase_client_email and self.firebase_private_key:
            return {
                "type": "service_account",
                "project_id": self.firebase_project_id,
                "private_key_id": self.firebase_private_key_id or "",
                "private_key": self.firebase_private_key.replace("\\n", "\n"),  # Handle escaped newlines
                "client_email": self.firebase_client_email,
                "client_id": "",
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            }
        return None

    def get_cors_origins(self) -> list:
        if self.cors_allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
