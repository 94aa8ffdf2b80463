"""
Application settings

Values come from the environment (optionally a .env file next to the
backend) with defaults suitable for local development.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

BACKEND_DIR = Path(__file__).parent.parent
DEFAULT_CATALOG_PATH = BACKEND_DIR / "gamedata" / "data" / "phb.json"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",      # Nuxt dev server
    "http://127.0.0.1:3000",
]


def _get_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


class Settings:
    """Runtime configuration read from environment variables"""

    def __init__(self):
        self.host: str = os.getenv("HOST", "127.0.0.1")
        self.port: int = int(os.getenv("PORT", "8000"))
        self.debug: bool = _get_bool("DEBUG", False)
        self.catalog_path: Path = Path(os.getenv("CATALOG_PATH", str(DEFAULT_CATALOG_PATH)))
        # Seconds a request waits for another request on the same character
        self.character_lock_timeout: float = float(os.getenv("CHARACTER_LOCK_TIMEOUT", "5.0"))
        origins = os.getenv("ALLOWED_ORIGINS", "")
        self.allowed_origins: List[str] = (
            [o.strip() for o in origins.split(",") if o.strip()] if origins else list(DEFAULT_ALLOWED_ORIGINS)
        )

    def to_dict(self):
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "catalog_path": str(self.catalog_path),
            "character_lock_timeout": self.character_lock_timeout,
            "allowed_origins": self.allowed_origins,
        }


settings = Settings()
