# relay/shared/config.py
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _csv(name: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in os.getenv(name, "").split(",") if p.strip())


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # storage locations
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "relay.db")

    # limits
    MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(150 * 1024 * 1024)))  # 150MB
    MAX_TOTAL_FILES: int = int(os.getenv("MAX_TOTAL_FILES", "1000"))

    # access policy, e.g. ALLOWED_IP_RANGES="10.0.0.0/8,192.168.1.0/24"
    ALLOWED_IP_RANGES: tuple[str, ...] = _csv("ALLOWED_IP_RANGES")
    ALLOW_ALL_IPS: bool = _flag("ALLOW_ALL_IPS", "false")
    TRUST_PROXY_HEADERS: bool = _flag("TRUST_PROXY_HEADERS", "true")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = int(os.getenv("PORT", "8000"))

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.DATABASE_PATH}"


settings = Settings()
