"""Configuration settings for ZenScreen."""

import logging
import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (settings, rules, records).

    Priority:
        1. WELLBEING_DATA_DIR environment variable
        2. Bundled app: per-platform application data folder
        3. Development: BASE_DIR/data

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("WELLBEING_DATA_DIR", "")
    if override:
        return Path(override).expanduser()

    if is_bundled():
        if sys.platform == 'darwin':
            return Path.home() / "Library" / "Application Support" / "ZenScreen"
        elif sys.platform == 'win32':
            appdata = os.environ.get('APPDATA')
            if appdata:
                return Path(appdata) / "ZenScreen"
            return Path.home() / "AppData" / "Roaming" / "ZenScreen"
        return Path.home() / ".local" / "share" / "ZenScreen"

    # Development mode
    return Path(__file__).parent / "data"


# Load environment variables from .env file (only in development)
if not is_bundled():
    # Explicitly load from the project root so .env is found from any cwd
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# Base directory (project root / bundle root)
BASE_DIR = Path(getattr(sys, '_MEIPASS', Path(__file__).parent))

# User data directory (for the key-value store)
USER_DATA_DIR = get_user_data_dir()

# Key-value store document
STORE_FILE = USER_DATA_DIR / "wellbeing_store.json"

try:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
except OSError as e:
    logging.getLogger(__name__).error(f"Failed to create data directory {USER_DATA_DIR}: {e}")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Host app states (foreground/background notifications)
APP_STATE_ACTIVE = "active"
APP_STATE_BACKGROUND = "background"
APP_STATE_INACTIVE = "inactive"
APP_STATES = (APP_STATE_ACTIVE, APP_STATE_BACKGROUND, APP_STATE_INACTIVE)

# Block rule modes
MODE_FULL_BLOCK = "full_block"
MODE_TIME_LIMIT = "time_limit"
MODE_UNRESTRICTED = "unrestricted"
BLOCK_MODES = (MODE_FULL_BLOCK, MODE_TIME_LIMIT, MODE_UNRESTRICTED)

# Sleep detection
# Background gaps at least this long are recorded as sleep
SLEEP_DETECTION_THRESHOLD_SECONDS = int(os.getenv("SLEEP_DETECTION_THRESHOLD_SECONDS", "7200"))
IDEAL_SLEEP_HOURS = 8
SLEEP_SCORE_PENALTY_PER_HOUR = 15

# Blocking interstitial throttle (seconds between modal prompts per app)
INTERSTITIAL_MIN_INTERVAL_SECONDS = 60

# Focus mode
FOCUS_DURATION_PRESETS = [15, 25, 45, 60]  # Minutes
DEFAULT_FOCUS_MINUTES = 25
GRAYSCALE_OPACITY = 0.4  # Overlay opacity for non-focus apps

# Puzzle bonus minutes
MAX_DAILY_BONUS_MINUTES = 15
DEFAULT_PUZZLE_TIERS = [
    {"tier": 1, "puzzlesRequired": 1, "minutesEarned": 5},
    {"tier": 2, "puzzlesRequired": 2, "minutesEarned": 5},
    {"tier": 3, "puzzlesRequired": 3, "minutesEarned": 5},
]

# Storage keys
KEY_SETTINGS = "settings"
KEY_APPS = "apps"
KEY_BLOCK_RULES = "block_rules"
KEY_ACTIVE_FOCUS_SESSION = "active_focus_session"
KEY_FOCUS_SESSIONS = "focus_sessions"
KEY_SLEEP_RECORDS = "sleep_records"
KEY_PUZZLE_EXTENSIONS = "puzzle_extensions"
KEY_DAILY_BONUS = "daily_bonus"
KEY_USED_PUZZLE_IDS = "used_puzzle_ids"
KEY_APP_USAGE_TODAY = "app_usage_today"
KEY_LAST_RESET_DATE = "last_reset_date"
KEY_LAST_INTERSTITIAL = "last_interstitial"

# Keys stored as {dateTag, payload} pairs and cleared on daily rollover
DAILY_KEYS = (
    KEY_PUZZLE_EXTENSIONS,
    KEY_DAILY_BONUS,
    KEY_USED_PUZZLE_IDS,
    KEY_APP_USAGE_TODAY,
)

# User settings defaults (stored settings are merged over these)
DEFAULT_SETTINGS = {
    "onboardingComplete": False,
    "warningMessage": "You have reached your daily limit for this app. Take a break and breathe.",
    "dailyGoalMinutes": 120,
    "focusReminderEnabled": True,
    "sleepTrackingEnabled": True,
    "sleepBedtime": "22:00",
    "sleepWakeTime": "07:00",
    "bedtimeReminderEnabled": True,
    "autoSleepDetectionEnabled": True,
    "blueLightEnabled": True,
    "blueLightIntensity": 50,
    "blueLightAutoSchedule": True,
}
