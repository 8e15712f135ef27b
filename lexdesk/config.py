"""
Configuration for LexDesk
=========================

Environment variables:
- SESSION_LOADING_TIMEOUT: Seconds before session loading is forced off (default: 8)
- FIRM_LOADING_TIMEOUT: Seconds before firm settings loading is forced off (default: 8)
- AUTO_CREATE_FIRM_SETTINGS: Create a default firm settings row on first load (default: true)
- JWT_SECRET_KEY: Secret used to sign session tokens
- REDIS_URL: Optional Redis for fast token revocation checks
- STORAGE_ROOT: Directory backing the file storage buckets (default: ./storage)
- PUBLIC_URL: Base URL used to build public storage links
- CORS_ALLOW_ORIGINS: Comma separated list of allowed origins

DATABASE_URL and SQL_ECHO are read directly by the engine factory (db/session.py).
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Session bootstrap
    session_loading_timeout: float = 8.0
    firm_loading_timeout: float = 8.0
    auto_create_firm_settings: bool = True
    default_firm_name: str = "My Law Firm"
    default_profile_role: str = "attorney"

    # Auth tokens
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    min_password_length: int = 6

    # Token revocation fast path (database is always the source of truth)
    redis_url: Optional[str] = None

    # File storage
    storage_root: str = "./storage"
    public_url: str = "http://localhost:8000"
    logo_max_bytes: int = 5 * 1024 * 1024
    storage_limit_bytes: int = 200 * 1024 * 1024

    # Dashboard
    recent_items_limit: int = 5

    # HTTP
    cors_allow_origins: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def cors_origins(self) -> List[str]:
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def validate_config(self) -> List[str]:
        """Validate configuration, return list of warnings"""
        warnings = []

        if self.jwt_secret_key == "dev-secret-key-change-in-production":
            warnings.append("JWT_SECRET_KEY is the development default; set it in production")

        if not 5 <= self.session_loading_timeout <= 10:
            warnings.append(
                f"SESSION_LOADING_TIMEOUT={self.session_loading_timeout} is outside the usual 5-10s range"
            )

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
