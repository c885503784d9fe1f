from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Defaults can be overridden by environment variables
DEFAULT_MODEL_TYPE = os.getenv("PREDICTIVE_LOADER_MODEL", "conditional")
DEFAULT_MAX_CONCURRENT_LOADS = int(os.getenv("PREDICTIVE_LOADER_MAX_CONCURRENT", "5"))
DEFAULT_NETWORK_POLL_SECONDS = float(os.getenv("PREDICTIVE_LOADER_NETWORK_POLL_SECONDS", "60"))
DEFAULT_SEED = int(os.getenv("PREDICTIVE_LOADER_SEED", "0"))
