import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_url: Optional[str] = None
    database_name: str = "problemtracker"
    port: int = 8000
    token_ttl_minutes: int = 24 * 60
    enforce_user_ownership: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment (and a .env file, if present)."""
        load_dotenv()

        secret = os.getenv("JWT_SECRET")
        if not secret:
            raise ConfigError("JWT_SECRET is not set")

        return cls(
            jwt_secret=secret,
            database_url=os.getenv("DATABASE_URL") or os.getenv("MONGO_URI"),
            database_name=os.getenv("DATABASE_NAME", "problemtracker"),
            port=int(os.getenv("PORT", 8000)),
            token_ttl_minutes=int(os.getenv("TOKEN_TTL_MINUTES", 24 * 60)),
            enforce_user_ownership=os.getenv("ENFORCE_USER_OWNERSHIP", "").strip().lower() in TRUTHY,
        )
