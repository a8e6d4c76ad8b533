import os
from pathlib import Path

DB_PATH = os.environ.get("DB_PATH", str(Path.home() / ".cache" / "codepulse" / "data.db"))
TZ_NAME = os.environ.get("TZ", "America/Toronto")
PORT = int(os.environ.get("CODEPULSE_PORT", "56000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

IDLE_THRESHOLD_S = int(os.environ.get("IDLE_THRESHOLD_S", "120"))
FLUSH_GRANULARITY_S = int(os.environ.get("FLUSH_GRANULARITY_S", "60"))
MERGE_GAP_TOLERANCE_S = int(os.environ.get("MERGE_GAP_TOLERANCE_S", "600"))
DAILY_GOAL_HOURS = float(os.environ.get("DAILY_GOAL_HOURS", "8.0"))  # display only

# File saves
SAVE_SESSION_S = int(os.environ.get("SAVE_SESSION_S", "10"))
SAVE_THROTTLE_S = int(os.environ.get("SAVE_THROTTLE_S", "5"))
