"""
Runtime settings read from the environment.
Defaults match the 2025 MegaBike season (12 riders, budget 11000).
"""
from __future__ import annotations

import os

DB_PATH = os.environ.get("MEGABIKE_DB_PATH")  # None = data/megabike.db under project root
DB_TIMEOUT_SECONDS = float(os.environ.get("MEGABIKE_DB_TIMEOUT", "5.0"))

JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "megabike-dev-secret-change-in-production")

CURRENT_SEASON = int(os.environ.get("MEGABIKE_SEASON", "2025"))
BUDGET_CEILING = int(os.environ.get("MEGABIKE_BUDGET", "11000"))
ROSTER_SIZE = int(os.environ.get("MEGABIKE_ROSTER_SIZE", "12"))

LOG_LEVEL = os.environ.get("MEGABIKE_LOG_LEVEL", "INFO")

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get(
        "MEGABIKE_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if o.strip()
]
