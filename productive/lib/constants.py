"""Shared constants for Productive Cloud."""

# Datasets synchronised as a unit, in sync order
DATA_TYPES = ("habits", "crm", "calendar", "settings")

# Local Store keys
LOCAL_KEY_PREFIX = "productiveCloud_"
AUTH_TOKEN_KEY = "authToken"
LAST_SYNC_KEY = "productiveCloud_lastSync"

# Sync timing (seconds)
DEFAULT_SYNC_INTERVAL = 30
DEFAULT_SYNC_TIMEOUT = 10
DEFAULT_CHECK_INTERVAL = 30
DEFAULT_FLUSH_BUDGET = 2.0

# Domain limits
MAX_SUBTASK_DEPTH = 10
MAX_HABITS = 10
STREAK_LOOKBACK_DAYS = 30

PROJECT_STATUSES = ("planning", "active", "completed")
ITEM_STATUSES = ("todo", "in-progress", "done")
PRIORITIES = ("low", "medium", "high")

# Export format markers
EXPORT_APP_NAME = "Productive Cloud"
EXPORT_FORMAT_VERSION = "2.0"
MODULE_FORMAT_VERSION = "1.0"
MODULE_NAMES = {
    "habits": "Habit Tracker",
    "crm": "Project CRM",
    "calendar": "Calendar",
    "settings": "Settings",
}
