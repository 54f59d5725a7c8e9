import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .records import DEFAULT_CLUSTER

DEFAULT_DB_PATH = "data/secretsync.db"


def load_env() -> None:
    """Load .env from the working directory if present.
    Values already in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)


@dataclass
class Settings:
    db_path: Path
    cluster: str
    log_level: str
    log_dir: Optional[Path]


def load_settings() -> Settings:
    """Read SECRETSYNC_* settings from the environment."""
    log_dir = os.getenv("SECRETSYNC_LOG_DIR")
    return Settings(
        db_path=Path(os.getenv("SECRETSYNC_DB", DEFAULT_DB_PATH)),
        cluster=os.getenv("SECRETSYNC_CLUSTER", DEFAULT_CLUSTER),
        log_level=os.getenv("SECRETSYNC_LOG_LEVEL", "INFO"),
        log_dir=Path(log_dir) if log_dir else None,
    )
