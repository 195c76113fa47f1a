"""Application configuration."""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


def _data_dir() -> Path:
    base = Path(__file__).resolve().parent.parent
    return base / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AUNTIE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8585
    debug: bool = False

    data_dir: Path = _data_dir()
    logs_dir: Path | None = None
    artwork_dir: Path | None = None

    rms_base_url: str = "https://rms.api.bbc.co.uk/v2"
    user_agent: str = "auntiebar/0.1 (+https://github.com/auntiebar/auntiebar)"
    request_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 30.0
    # Broadcasts requested for now/next: the current one plus (limit - 1) upcoming.
    now_next_limit: int = 2
    # Keep the last good snapshot/now-next when a tick fails, marking it stale.
    preserve_on_failure: bool = True
    # Artwork PNGs kept in artwork_dir before the least recently used are deleted.
    artwork_cache_max_files: int = 200

    def __init__(self, **kwargs):  # type: ignore[no-untyped-def]
        super().__init__(**kwargs)
        self.logs_dir = self.logs_dir or self.data_dir / "logs"
        self.artwork_dir = self.artwork_dir or self.data_dir / "artwork"

    def ensure_dirs(self) -> None:
        """Create data, log and artwork directories (called at app startup, not import)."""
        for d in (self.data_dir, self.logs_dir, self.artwork_dir):
            if d is not None:
                d.mkdir(parents=True, exist_ok=True)


settings = Settings()
