"""
System constants that should never change.

These are technical limits and built-in defaults, not user preferences.
User-configurable values come from flags, ``IUO_*`` variables or the tasks file.
"""

ENV_PREFIX = "IUO_"  # Prefix of every environment variable the settings read

DEFAULT_WATCH_DIR = "/watch"
DEFAULT_UNDONE_DIR = "/undone"
DEFAULT_TASKS_FILE = "tasks.yaml"
DEFAULT_MAX_CONCURRENT_TASKS = 10  # Optimization chains allowed to run at once
DEFAULT_HTTP_TIMEOUT_SECONDS = 120.0  # Whole upload request
DEFAULT_SHUTDOWN_GRACE_SECONDS = 10.0  # Wait for in-flight files on shutdown

MIN_API_KEY_LENGTH = 10
DIRECTORY_MODE = 0o750

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})
