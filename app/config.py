from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_name: str = Field("Content Backend", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")
    secret_key: str = Field("change-me", alias="SECRET_KEY")
    access_token_expire_minutes: int = Field(120, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    remember_token_expire_minutes: int = Field(60 * 24 * 30, alias="REMEMBER_TOKEN_EXPIRE_MINUTES")
    database_url: str = Field(default=None, alias="DATABASE_URL")

    storage_root: str = Field("storage/public", alias="STORAGE_ROOT")
    public_base_url: str = Field("http://localhost:8000", alias="PUBLIC_BASE_URL")
    max_image_mb: int = Field(2, alias="MAX_IMAGE_MB")
    max_download_mb: int = Field(50, alias="MAX_DOWNLOAD_MB")

    contact_ip_limit: int = Field(3, alias="CONTACT_IP_LIMIT")
    contact_ip_window_hours: int = Field(1, alias="CONTACT_IP_WINDOW_HOURS")
    contact_email_limit: int = Field(5, alias="CONTACT_EMAIL_LIMIT")
    contact_email_window_hours: int = Field(24, alias="CONTACT_EMAIL_WINDOW_HOURS")

    admin_email: str | None = Field(None, alias="ADMIN_EMAIL")
    admin_password: str | None = Field(None, alias="ADMIN_PASSWORD")
    admin_name: str = Field("Administrator", alias="ADMIN_NAME")

    cors_origins: str = Field("*", alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
