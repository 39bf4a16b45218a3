"""Environment-driven settings (.env, then .env.local, then the process env)."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Load .env if present; .env.local overrides it
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
_env_local_file = PROJECT_ROOT / ".env.local"
if _env_local_file.exists():
    load_dotenv(_env_local_file, override=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Rekordbox collection export used to seed the service's library store
LIBRARY_XML_PATH = os.getenv("LIBRARY_XML_PATH", "").strip() or None
MAX_XML_SIZE_BYTES = int(os.getenv("TRACKID_MAX_XML_MB", "20")) * 1024 * 1024

# Parsed-library cache
LIBRARY_CACHE_VERSION = int(os.getenv("TRACKID_LIBRARY_CACHE_VERSION", "1"))
LIBRARY_CACHE_MAXSIZE = int(os.getenv("TRACKID_LIBRARY_CACHE_MAXSIZE", "10"))
LIBRARY_CACHE_TTL_S = int(os.getenv("TRACKID_LIBRARY_CACHE_TTL_S", "600"))

# How long a finished job stays visible before its kind reads as idle again
JOB_HISTORY_MAXSIZE = int(os.getenv("TRACKID_JOB_HISTORY_MAXSIZE", "16"))
JOB_HISTORY_TTL_S = int(os.getenv("TRACKID_JOB_HISTORY_TTL_S", "3600"))

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
]
_env_origins = os.getenv("ALLOWED_ORIGINS")
if _env_origins:
    ALLOWED_ORIGINS = [o.strip() for o in _env_origins.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = DEFAULT_ALLOWED_ORIGINS

PORT = int(os.getenv("PORT", "8000"))
