"""
Configuration for the health analyzer store.

Values come from the environment (a local .env file is honoured) and only
provide defaults; the Store accepts explicit overrides for each of them.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("HEALTHANALYZER_DB_PATH", "./data/healthanalyzer.db")

# Must match the embedding model output (1536 for text-embedding-3-small)
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1536"))

# Engine tuning
DB_BUSY_TIMEOUT_MS = int(os.getenv("DB_BUSY_TIMEOUT_MS", "5000"))
VECTOR_SEARCH_BATCH_SIZE = int(os.getenv("VECTOR_SEARCH_BATCH_SIZE", "1024"))
CANCEL_CHECK_INTERVAL = int(os.getenv("CANCEL_CHECK_INTERVAL", "1000"))  # SQLite VM steps

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

VERSION = "0.1.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def is_memory_path(db_path: str) -> bool:
    """True for SQLite's private in-memory database name."""
    return db_path == ":memory:"


def ensure_db_directory(db_path: str = DB_PATH) -> None:
    """Ensure the database directory exists."""
    if is_memory_path(db_path):
        return
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
