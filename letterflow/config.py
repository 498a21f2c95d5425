"""Runtime configuration, read from the environment at import time."""
import os

# PostgreSQL in production, SQLite locally
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./letterflow.db")

# Total bytes the key-value store may hold across all keys
STORE_CAPACITY_BYTES = int(os.getenv("LETTERFLOW_STORE_CAPACITY_BYTES", str(5 * 1024 * 1024)))

# Compare-and-set attempts before a mutation gives up with a Conflict
STORE_RETRIES = int(os.getenv("LETTERFLOW_STORE_RETRIES", "5"))

# Activity log keeps only the newest N entries
LOG_CAPACITY = int(os.getenv("LETTERFLOW_LOG_CAPACITY", "100"))

MAX_ATTACHMENT_BYTES = int(os.getenv("LETTERFLOW_MAX_ATTACHMENT_BYTES", str(500 * 1024)))

DRAFTING_URL = os.getenv("LETTERFLOW_DRAFTING_URL", "https://text.pollinations.ai/")
DRAFTING_MODEL = os.getenv("LETTERFLOW_DRAFTING_MODEL", "openai")
DRAFTING_TIMEOUT = float(os.getenv("LETTERFLOW_DRAFTING_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
