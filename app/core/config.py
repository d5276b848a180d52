"""
Configuration management for the Leave Workflow Backend
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    DATABASE_URL: str = Field(default="sqlite:///./leave_workflow.db", description="SQLAlchemy database URL")
    JWT_SECRET_KEY: str = Field(default="change-me-in-production", description="JWT secret key for token signing")

    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    INITIAL_ADMIN_EMAIL: str = Field(
        default="admin@company.com",
        description="Email for initial admin user (used when no admin exists)"
    )
    INITIAL_ADMIN_PASSWORD: str = Field(
        default="Admin@12345",
        description="Password for initial admin user (used when no admin exists)"
    )

    # Approval workflow
    MAX_APPROVAL_LEVELS: int = Field(
        default=2, ge=1, description="How many levels of the manager chain receive an approval step"
    )

    # Carry forward (year-end run)
    CARRY_FORWARD_DEFAULT_CAP: int = Field(default=5, ge=0, description="Upper cap for year-end carry forward days")
    CARRY_FORWARD_EXPIRY_MONTH: int = Field(default=3, ge=1, le=12, description="Month carried days expire in the target year")
    CARRY_FORWARD_EXPIRY_DAY: int = Field(default=31, ge=1, le=31, description="Day carried days expire in the target year")

    # Deduct / carry-forward credit against a missing (employee, leave type, year) bucket:
    # True creates the bucket from the leave type default, False raises BalanceNotFound.
    AUTO_CREATE_MISSING_BALANCE: bool = Field(default=True)

    NOTIFICATIONS_ENABLED: bool = Field(default=True, description="Write in-app notifications for workflow events")

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
