"""Global configuration for the Family Plan reminder service."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Web Push (VAPID) - push is a no-op unless both keys are set
VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY")
VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY")

_raw_subject = os.getenv("VAPID_SUBJECT", "mailto:family@example.com")
VAPID_SUBJECT = (
    _raw_subject
    if _raw_subject.startswith("mailto:") or _raw_subject.startswith("http")
    else f"mailto:{_raw_subject}"
)

# Database - first matching env var wins
DATA_DIR = Path(
    os.getenv("DB_DIR")
    or os.getenv("DATA_DIR")
    or os.getenv("RAILWAY_VOLUME_MOUNT_PATH")
    or os.getenv("RENDER_DISK_PATH")
    or Path.cwd() / "data"
)
DB_PATH = str(DATA_DIR / "family-home.db")

# Logging
LOG_DIR = Path(os.getenv("LOG_DIR", DATA_DIR / "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def push_configured() -> bool:
    """True when a VAPID key pair is available for delivery."""
    return bool(VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY)
