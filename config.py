# config.py
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _pick_data_dir() -> Path:
    candidates = []
    env = os.getenv("DATA_DIR")
    if env:
        candidates.append(Path(env))
    candidates += [Path("/data"), Path.cwd() / "data"]

    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            t = p / ".rwtest"
            t.write_text("ok")
            t.unlink(missing_ok=True)
            return p
        except OSError:
            continue
    return Path.cwd()


@dataclass
class Settings:
    data_dir: Path
    database_url: str
    log_level: str = "INFO"
    log_file: Path | None = None


def load_settings() -> Settings:
    """
    Reads the environment each call; nothing is cached at import time.
    The data directory is only probed (and created) when the SQLite default is needed.
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        data_dir = Path(os.getenv("DATA_DIR") or Path.cwd() / "data")
    else:
        data_dir = _pick_data_dir()
        database_url = f"sqlite:///{(data_dir / 'shifts.db').as_posix()}"
    log_file = os.getenv("SHIFTS_LOG_FILE")
    return Settings(
        data_dir=data_dir,
        database_url=database_url,
        log_level=os.getenv("SHIFTS_LOG_LEVEL", "INFO").upper(),
        log_file=Path(log_file) if log_file else None,
    )


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Console logging, plus a log file when SHIFTS_LOG_FILE is set."""
    settings = settings or load_settings()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("shifts")
