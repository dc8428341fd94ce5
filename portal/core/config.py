from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Vendor Compliance Portal"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database (SQLite for local dev, any async SQLAlchemy URL in production)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./portal_dev.db",
        alias="DATABASE_URL",
    )

    # Audit trail middleware
    audit_enabled: bool = Field(default=True, alias="AUDIT_ENABLED")

    # Notification fan-out
    notifications_enabled: bool = Field(default=True, alias="NOTIFICATIONS_ENABLED")
    admin_notification_recipient: str = Field(
        default="role:admin", alias="ADMIN_NOTIFICATION_RECIPIENT",
    )  # expanded to every active admin by the external dispatcher

    # Submission defaults
    default_work_location: str = Field(
        default="IMTMA, Bengaluru", alias="DEFAULT_WORK_LOCATION",
    )
    min_period_year: int = Field(default=2023, alias="MIN_PERIOD_YEAR")
    max_period_year: int = Field(default=2035, alias="MAX_PERIOD_YEAR")

    # Local artifact store (files are written by the upload collaborator)
    artifact_root: str = Field(default="./uploads", alias="ARTIFACT_ROOT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

settings = Settings()
