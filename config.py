import os

# Base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Paths
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
TESTS_DIR = os.getenv("CBT_TESTS_DIR", os.path.join(BASE_DIR, "data", "test_pages"))
REPORTS_DIR = os.getenv("CBT_REPORTS_DIR", os.path.join(BASE_DIR, "data", "test_reports"))

# Server
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# Browser sessions
SESSION_COOKIE = "cbt_session"
SESSION_TTL = int(os.getenv("CBT_SESSION_TTL", "14400"))   # 4h: longest test plus slack
CLEANUP_INTERVAL_SECONDS = 300

# Countdown
TICK_INTERVAL_SECONDS = float(os.getenv("CBT_TICK_INTERVAL", "1.0"))
