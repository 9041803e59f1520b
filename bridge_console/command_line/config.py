from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables from .env (if present)
load_dotenv()

DEFAULT_CHAINS_FILE = Path(__file__).parent / "chains.yml"


class Settings(BaseModel):
    # YAML chain alias catalog with the token/NFT bridge allow-lists
    chains_file: str = os.getenv("CHAINS_FILE", str(DEFAULT_CHAINS_FILE))

    # JSON file backing the recency lists (empty keeps them in memory)
    recency_store_path: str = os.getenv("RECENCY_STORE_PATH", "")

    # Level for the command line loggers
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
