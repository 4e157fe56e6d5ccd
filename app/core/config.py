from pydantic_settings import BaseSettings
from typing import List
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", True)

    # Database
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # JWT
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15)

    # CORS
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "*")

    @property
    def allowed_origins_list(self) -> List[str]:
        return self.ALLOWED_ORIGINS.split(",")

    # Redis
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

    @property
    def redis_connection_url(self) -> str:
        return self.REDIS_URL.strip()

    # Challenge sessions
    CHALLENGE_SESSION_CLEANUP_INTERVAL_SECONDS: int = os.getenv(
        "CHALLENGE_SESSION_CLEANUP_INTERVAL_SECONDS", 3600
    )
    # "sessions changed" signals go to Redis pub/sub as well as in-process listeners
    SESSION_EVENTS_REDIS_ENABLED: bool = (
        os.getenv("SESSION_EVENTS_REDIS_ENABLED", "true").lower() == "true"
    )
    AUDIT_LOG_MAX_ENTRIES: int = os.getenv("AUDIT_LOG_MAX_ENTRIES", 10000)

    # PostHog Analytics
    POSTHOG_API_KEY: str = os.getenv("POSTHOG_API_KEY", "")
    POSTHOG_HOST: str = os.getenv("POSTHOG_HOST", "https://us.i.posthog.com")
    POSTHOG_ENABLE_EXCEPTION_AUTOCAPTURE: bool = (
        os.getenv("POSTHOG_ENABLE_EXCEPTION_AUTOCAPTURE", "true").lower() == "true"
    )

    class Config:
        env_file = [".env.local", ".env"]
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()
