"""Household domain configuration - recurrence and reminder settings."""

import os

# Used when a household has no (or an unknown) IANA zone
DEFAULT_TIMEZONE = os.environ.get("FAMILY_DEFAULT_TIMEZONE", "Europe/Zurich")

# Local wall-clock times of the three daily sweeps (household zone)
MORNING_HOUR = 7
EVENING_HOUR = 20
PENALTY_HOUR = 21
SWEEP_MINUTE = 0

# Months added per step for month-based recurrence classes
MONTH_INTERVALS = {
    "monthly": 1,
    "seasonal": 3,
    "half_year": 6,
    "yearly": 12,
}

# Safety valve for the late-completion skip-forward loop
SKIP_FORWARD_LIMIT = 24

# Web Push delivery
PUSH_TIMEOUT_SECONDS = float(os.environ.get("PUSH_TIMEOUT_SECONDS", 10))
PUSH_TTL_SECONDS = 4 * 7 * 24 * 3600  # 4 weeks

# How often the scheduler re-reads household zones to add/remove sweep jobs
TIMEZONE_POLL_SECONDS = 300

# Late firing tolerance for a sweep (e.g. event loop was blocked)
MISFIRE_GRACE_SECONDS = 15 * 60
