"""
Runtime configuration.

Values come from environment variables (optionally loaded from .env via
env.load_env); CLI flags override them per invocation.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("data/jobs.db")
    es_url: str = "http://localhost:9200"
    es_username: Optional[str] = None
    es_password: Optional[str] = None
    index_name: str = "jobs"
    num_workers: int = 5
    batch_size: int = 50
    queue_size: int = 0  # 0 = num_workers * batch_size
    page_size: int = 100
    max_page_size: int = 100
    timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=Path(os.getenv("JOBINDEX_DB_PATH", "data/jobs.db")),
            es_url=os.getenv("ELASTICSEARCH_URL", "http://localhost:9200"),
            es_username=os.getenv("ELASTICSEARCH_USERNAME") or None,
            es_password=os.getenv("ELASTICSEARCH_PASSWORD") or None,
            index_name=os.getenv("JOBINDEX_INDEX", "jobs"),
            num_workers=_env_int("JOBINDEX_WORKERS", 5),
            batch_size=_env_int("JOBINDEX_BATCH_SIZE", 50),
            queue_size=_env_int("JOBINDEX_QUEUE_SIZE", 0),
            page_size=_env_int("JOBINDEX_PAGE_SIZE", 100),
            max_page_size=_env_int("JOBINDEX_MAX_PAGE_SIZE", 100),
            timeout=_env_float("JOBINDEX_TIMEOUT", 10.0),
            log_level=os.getenv("JOBINDEX_LOG_LEVEL", "INFO"),
        )

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    @property
    def effective_queue_size(self) -> int:
        if self.queue_size > 0:
            return self.queue_size
        return self.num_workers * self.batch_size
