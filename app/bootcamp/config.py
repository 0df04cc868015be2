import os
from dataclasses import dataclass

PRODUCTION_ENVS = ("prod", "production")


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_positive_int(name: str, default: int) -> int:
    """Listing sizes and day windows; a missing, malformed or non-positive value means ``default``."""
    try:
        value = int(_getenv(name) or default)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    # Directory / review queue
    users_per_page: int
    products_per_page: int
    inactive_days: int

    # Avatar storage
    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            secret_key=_getenv("SECRET_KEY", "change-me"),
            env=_getenv("ENV", "development"),
            database_url=_getenv("DATABASE_URL", "sqlite:///bootcamp.db"),
            users_per_page=_getenv_positive_int("USERS_PER_PAGE", 20),
            products_per_page=_getenv_positive_int("PRODUCTS_PER_PAGE", 50),
            inactive_days=_getenv_positive_int("INACTIVE_DAYS", 30),
            storage_backend=_getenv("STORAGE_BACKEND", "local").lower(),
            storage_root=_getenv("STORAGE_ROOT"),
            s3_endpoint=_getenv("S3_ENDPOINT"),
            s3_region=_getenv("S3_REGION", "nyc3"),
            s3_bucket=_getenv("S3_BUCKET"),
            s3_access_key_id=_getenv("S3_ACCESS_KEY_ID"),
            s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY"),
        )

    @property
    def is_production(self) -> bool:
        return self.env.lower() in PRODUCTION_ENVS

    def as_flask_config(self) -> dict:
        return {
            "SECRET_KEY": self.secret_key,
            "ENV": self.env,
            "DATABASE_URL": self.database_url,
            "USERS_PER_PAGE": self.users_per_page,
            "PRODUCTS_PER_PAGE": self.products_per_page,
            "INACTIVE_DAYS": self.inactive_days,
            "STORAGE_BACKEND": self.storage_backend,
            "STORAGE_ROOT": self.storage_root,
            "S3_ENDPOINT": self.s3_endpoint,
            "S3_REGION": self.s3_region,
            "S3_BUCKET": self.s3_bucket,
            "S3_ACCESS_KEY_ID": self.s3_access_key_id,
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key,
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
            "SESSION_COOKIE_SECURE": self.is_production,
            # Avatars only.
            "MAX_CONTENT_LENGTH": 5 * 1024 * 1024,
        }


def load_config() -> dict:
    return Settings.from_env().as_flask_config()
