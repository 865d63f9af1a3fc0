"""
GasWatch Configuration
All tuneable settings in one place.
"""
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Simulation ────────────────────────────────────────────────
# Use the in-memory store + synthetic gas values instead of Firebase
SIM_MODE = _env_bool("GASWATCH_SIM", False)

# ── Remote Store ──────────────────────────────────────────────
REMOTE = {
    "kind":     "memory" if SIM_MODE else "http",   # "http" | "memory"
}

FIREBASE = {
    "db_root":  os.getenv("GASWATCH_DB_ROOT",
                          "https://gas-detection-bd536-default-rtdb.firebaseio.com"),
    "auth":     os.getenv("GASWATCH_DB_AUTH", ""),   # optional ?auth= token
    "timeout":  5,
    "headers":  {"Content-Type": "application/json"},
}

# ── Polling Loop ──────────────────────────────────────────────
POLL = {
    "interval":      float(os.getenv("GASWATCH_POLL_INTERVAL", "1.0")),   # seconds
    "max_in_flight": 1,      # timer ticks still waiting on I/O before new ones are skipped
}

# ── Detection ─────────────────────────────────────────────────
# One threshold for both log detection and alarm inference
DETECTION = {
    "gas_threshold": float(os.getenv("GASWATCH_THRESHOLD", "250")),
    "cooldown_sec":  float(os.getenv("GASWATCH_COOLDOWN", "30")),
}

# ── Local Log Store ───────────────────────────────────────────
STORE = {
    "path":         os.getenv("GASWATCH_STORE_PATH",
                              os.path.join(os.path.expanduser("~"),
                                           ".gaswatch", "store.json")),
    "log_key":      "gas_detection_logs",
    "max_entries":  100,
}

# ── Reset Command ─────────────────────────────────────────────
RESET = {
    "grace_sec": 2.0,      # give the board time to act on /resetFlag/reset
}

# ── Notifications ─────────────────────────────────────────────
NOTIFY = {
    "enabled":     _env_bool("GASWATCH_NOTIFY", True),
    "webhook_url": os.getenv("GASWATCH_WEBHOOK_URL", ""),
    "timeout":     5,
}

# ── Historical Readings ───────────────────────────────────────
READINGS = {
    "limit": 50,
}

# ── Simulator ─────────────────────────────────────────────────
SIMULATOR = {
    "interval":     1.0,
    "spike_chance": 0.02,   # per tick
}

# ── Server ────────────────────────────────────────────────────
SERVER = {
    "host": os.getenv("GASWATCH_HOST", "0.0.0.0"),
    "port": int(os.getenv("GASWATCH_PORT", "8765")),
}
