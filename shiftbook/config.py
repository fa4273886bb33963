import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# How often the background scheduler reconciles reservation statuses
RECONCILE_INTERVAL_SECONDS = float(os.getenv("RECONCILE_INTERVAL_SECONDS", "300"))
RECONCILE_ON_STARTUP = _env_bool("RECONCILE_ON_STARTUP", True)

# Finished shifts with a worker wait in pending_verification before completing
VERIFICATION_STEP_ENABLED = _env_bool("VERIFICATION_STEP_ENABLED", True)
VERIFICATION_WINDOW_HOURS = float(os.getenv("VERIFICATION_WINDOW_HOURS", "24"))

# Rules for new reservations
MIN_LEAD_HOURS = float(os.getenv("MIN_LEAD_HOURS", "48"))
MIN_DURATION_HOURS = float(os.getenv("MIN_DURATION_HOURS", "2"))
MAX_DURATION_HOURS = float(os.getenv("MAX_DURATION_HOURS", "8"))

LOAD_SAMPLE_DATA = _env_bool("LOAD_SAMPLE_DATA", True)
SAMPLE_DATA_PATH = Path(
    os.getenv(
        "SAMPLE_DATA_PATH",
        str(Path(__file__).resolve().parent.parent / "sample_data.json"),
    )
)
