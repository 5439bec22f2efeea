import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=os.getenv("ENV_FILE"), extra="ignore")

    ENV: str = "prod"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./journal_auth.db"

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 1800

    # HS256 unless both key paths are set, then RS256
    JWT_ALGORITHM: str | None = None
    JWT_SECRET: str = "CHANGE_ME"
    JWT_PRIVATE_KEY_PATH: str | None = None
    JWT_PUBLIC_KEY_PATH: str | None = None
    JWT_ISSUER: str = "journal-auth"
    JWT_ACCESS_MINUTES: int = 15
    JWT_REFRESH_DAYS: int = 7

    OTP_PEPPER: str = "CHANGE_ME"
    OTP_TTL_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 5
    REFRESH_TOKEN_PEPPER: str = ""

    MAIL_BACKEND: str = "smtp"  # smtp|console
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""
    SMTP_FROM_NAME: str = "Journaling App"
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: int = 10

    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    AUTH_OTP_RETENTION_DAYS: int = 1
    AUTH_REFRESH_RETENTION_DAYS: int = 1
    AUTH_EVENTS_RETENTION_DAYS: int = 180

    ALLOWED_HOSTS: str = "localhost,127.0.0.1,testserver"
    SECURITY_HEADERS_ENABLED: bool = True

    @property
    def jwt_algorithm(self) -> str:
        if self.JWT_ALGORITHM:
            return self.JWT_ALGORITHM
        if self.JWT_PRIVATE_KEY_PATH and self.JWT_PUBLIC_KEY_PATH:
            return "RS256"
        return "HS256"

settings = Settings()
