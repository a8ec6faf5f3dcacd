import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


class Settings:
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")
    OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    SUMMARY_MODEL: str = os.getenv("SUMMARY_MODEL", "openrouter/free")
    APP_URL: str = os.getenv("APP_URL", "http://localhost:3000")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    MAX_LINKS: int = int(os.getenv("MAX_LINKS", "8"))
    MAX_CHECKS_PER_LINK: int = int(os.getenv("MAX_CHECKS_PER_LINK", "5"))
    CHECK_WORKERS: int = int(os.getenv("CHECK_WORKERS", "4"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if o.strip()
    ]


settings = Settings()
