"""Runtime configuration for the commission core.

All values come from the environment (a local .env file is loaded first).

Usage:
    import settings
    threshold = settings.UPFRONT_CONFLICT_THRESHOLD
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.environ.get("DB_MAX_OVERFLOW", "10"))
DB_POOL_TIMEOUT = int(os.environ.get("DB_POOL_TIMEOUT", "30"))

# Advisory limits: how far a proposed rate may drift from its tier template
# (in percentage points) before a warning is raised.
UPFRONT_CONFLICT_THRESHOLD = Decimal(os.environ.get("UPFRONT_CONFLICT_THRESHOLD", "5"))
RESIDUAL_CONFLICT_THRESHOLD = Decimal(os.environ.get("RESIDUAL_CONFLICT_THRESHOLD", "3"))

# Dashboard cache windows
DASHBOARD_FRESH_TTL_SECONDS = float(os.environ.get("DASHBOARD_FRESH_TTL_SECONDS", "60"))
DASHBOARD_STALE_TTL_SECONDS = float(os.environ.get("DASHBOARD_STALE_TTL_SECONDS", "300"))

# Bulk rate operations
BULK_RATE_CONCURRENCY = int(os.environ.get("BULK_RATE_CONCURRENCY", "5"))

# Ledger write retries on optimistic-concurrency conflicts
LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
LEDGER_RETRY_BASE_DELAY_SECONDS = float(os.environ.get("LEDGER_RETRY_BASE_DELAY_SECONDS", "0.05"))
LEDGER_RETRY_MAX_DELAY_SECONDS = float(os.environ.get("LEDGER_RETRY_MAX_DELAY_SECONDS", "1.0"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
