from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=3000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_allow_origins: str = Field(
        default="http://localhost,http://localhost:80,http://localhost:8000",
        alias="CORS_ALLOW_ORIGINS",
    )

    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")

    jwt_secret: str = Field(default="dev_jwt_secret_change_me", alias="JWT_SECRET")
    jwt_ttl_hours: int = Field(default=72, alias="JWT_TTL_HOURS")
    login_code_ttl_minutes: int = Field(default=10, alias="LOGIN_CODE_TTL_MINUTES")
    promo_default_ttl_days: int = Field(default=30, alias="PROMO_DEFAULT_TTL_DAYS")

    smtp_host: str = Field(default="localhost", alias="SMTP_HOST")
    smtp_port: int = Field(default=25, alias="SMTP_PORT")
    smtp_from: str = Field(default="SpeakAllRight <noreply@speakallright.uz>", alias="SMTP_FROM")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
