from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


ASSETS_DIR = Path(__file__).parent / "assets"


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECIPEBOX_", env_file=".env", extra="ignore"
    )

    env: Env = Env.local
    html_dir: Path = ASSETS_DIR / "html"
    images_dir: Path = ASSETS_DIR / "img"
    db_url: str = "sqlite+aiosqlite:///recipebox.db"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    # Seconds a page waits for a storage call. None waits for as long as it takes.
    worker_timeout: float | None = None
    open_browser: bool = False

    @property
    def debug(self) -> bool:
        return self.env == Env.local
