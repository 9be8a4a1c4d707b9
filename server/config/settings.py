# server/config/settings.py
"""Game configuration constants and settings."""

import os

# Arena settings
ARENA_WIDTH = 800
ARENA_HEIGHT = 600

# Safe zone settings
SAFE_ZONE_X = 400
SAFE_ZONE_Y = 300
SAFE_ZONE_RADIUS = 450
SAFE_ZONE_MIN_RADIUS = 15
SAFE_ZONE_SHRINK = 0.75  # per tick
SAFE_ZONE_ALERT_STEP = 50
EXPOSURE_DAMAGE = 1.8  # per tick outside the zone

# Roster settings
TOTAL_PLAYERS = 50
BOT_COUNT = TOTAL_PLAYERS - 1
LOCAL_PLAYER_NAME = "YOU (MasterBranch)"
MAX_HEALTH = 100
BOT_NAMES = [
    "SyntaxError", "NullPointerEx", "StackOverflow", "BugSquasher", "GitGud",
    "KernelPanic", "VimGod", "IndentationError", "HeapDump", "MemoryLeak",
    "RaceCondition", "SegFault", "AsyncAwait", "BinarySearch", "Deadlock",
    "Gopher", "Rustacean", "PyExpert", "NodeNinja", "ReactWizard",
]

# Bot settings
BOT_STEP = 0.8
BOT_CENTER_EPSILON = 4
BOT_ATTRITION_BASE = 0.003
BOT_ATTRITION_SCALE = 8000  # zone shrink divided by this is added to the base chance

# Guard settings
GUARD_SPEED = 3.0
GUARD_CAPTURE_RADIUS = 12
GUARD_DAMAGE = 25

# Typing settings
ERROR_THRESHOLD = 3
STRIKE_DAMAGE = 25
COMPLETION_HEAL = 20
STRIKE_COOLDOWN = 1.2  # seconds
TAB_FALLBACK = "  "
CHARS_PER_WORD = 5

# Snippet settings
MIN_SNIPPET_LENGTH = 50
SNIPPET_LINES = 15
SNIPPET_PICK_WINDOW = 10
SNIPPET_MAX_PAGE = 5
SNIPPET_TIMEOUT = 10.0  # seconds
GITHUB_API_URL = "https://api.github.com"
GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN", "")
SNIPPET_REMOTE_ENABLED = os.environ.get("SNIPPET_REMOTE_ENABLED", "1") not in ("0", "false", "no")

# Persistence settings
HIGH_SCORE_KEY = "codebattle_high_score"
HIGH_SCORE_PATH = os.environ.get("HIGH_SCORE_PATH", "high_score.json")

# Terminal settings
LOG_HISTORY = 16
SPECTATOR_HISTORY = 6

# Server settings
TICK_INTERVAL = 0.1  # seconds (100 ms)
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")


def get_game_config():
    """Get the complete game configuration as a dictionary."""
    return {
        "arenaWidth": ARENA_WIDTH,
        "arenaHeight": ARENA_HEIGHT,
        "safeZone": {"x": SAFE_ZONE_X, "y": SAFE_ZONE_Y, "radius": SAFE_ZONE_RADIUS},
        "safeZoneMinRadius": SAFE_ZONE_MIN_RADIUS,
        "safeZoneShrink": SAFE_ZONE_SHRINK,
        "exposureDamage": EXPOSURE_DAMAGE,
        "totalPlayers": TOTAL_PLAYERS,
        "maxHealth": MAX_HEALTH,
        "guardSpeed": GUARD_SPEED,
        "guardCaptureRadius": GUARD_CAPTURE_RADIUS,
        "guardDamage": GUARD_DAMAGE,
        "errorThreshold": ERROR_THRESHOLD,
        "strikeDamage": STRIKE_DAMAGE,
        "completionHeal": COMPLETION_HEAL,
        "strikeCooldown": STRIKE_COOLDOWN,
        "tickInterval": TICK_INTERVAL,
    }
