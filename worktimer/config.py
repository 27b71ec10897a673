# -----------------------------------------------
# Settings for the work timer (environment driven)
# -----------------------------------------------
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from worktimer.domain import Duration

# =========================
# Time zone
# =========================
TZ = ZoneInfo(os.getenv("WORKTIMER_TZ", "Europe/Madrid"))


def local_now() -> datetime:
    return datetime.now(TZ)


# =========================
# Persistence (local fallback for development)
# =========================
def pick_data_dir() -> Path:
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


def database_url() -> str:
    """$DATABASE_URL, or a sqlite file in the first writable data dir."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{(pick_data_dir() / 'worktimer.db').as_posix()}"


# =========================
# Business rules
# =========================
def _minutes_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = int(raw)
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


DAILY_LIMIT = Duration.from_minutes(
    _minutes_from_env("WORKTIMER_DAILY_LIMIT_MINUTES", 10 * 60)
)
PAUSE_DEDUCTION_THRESHOLD = Duration.from_minutes(
    _minutes_from_env("WORKTIMER_PAUSE_THRESHOLD_MINUTES", 30)
)
PAUSE_DEDUCTION_AMOUNT = Duration.from_minutes(
    _minutes_from_env("WORKTIMER_PAUSE_DEDUCTION_MINUTES", 30)
)
