import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API Ayarları
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Veritabanı Ayarları
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./kutuphane.db")
    database_echo: bool = _env_bool("DATABASE_ECHO", "False")
    sqlite_busy_timeout: int = int(os.getenv("SQLITE_BUSY_TIMEOUT", "30"))

    # Güvenlik Ayarları
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "your-super-secret-jwt-key-change-in-production")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_minutes: int = int(os.getenv("JWT_EXPIRATION_MINUTES", "10080"))  # 7 gün
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Kiralama Ayarları
    default_due_days: int = int(os.getenv("DEFAULT_DUE_DAYS", "14"))
    rentals_page_size: int = int(os.getenv("RENTALS_PAGE_SIZE", "50"))

    # Öneri Ayarları
    recommendation_limit: int = int(os.getenv("RECOMMENDATION_LIMIT", "10"))

    # Sayfalama Ayarları
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "1000"))

    # Harici API Ayarları
    openlibrary_url: str = os.getenv("OPENLIBRARY_URL", "https://openlibrary.org")
    openlibrary_timeout: float = float(os.getenv("OPENLIBRARY_TIMEOUT", "10"))
    google_books_url: str = os.getenv("GOOGLE_BOOKS_URL", "https://www.googleapis.com/books/v1")
    google_books_api_key: Optional[str] = os.getenv("GOOGLE_BOOKS_API_KEY")
    google_books_timeout: float = float(os.getenv("GOOGLE_BOOKS_TIMEOUT", "10"))
    enable_google_books: bool = _env_bool("ENABLE_GOOGLE_BOOKS", "True")

    # Uygulama Ayarları
    app_name: str = os.getenv("APP_NAME", "Kütüphane Yönetim Sistemi API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = _env_bool("DEBUG", "False")


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Uygulama genelinde günlük kaydını yapılandır (API ve CLI başlangıcında çağrılır)."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
