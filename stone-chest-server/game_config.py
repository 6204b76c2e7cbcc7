"""Server configuration constants and environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

GAME_DIR = Path(__file__).parent
HOST = os.environ.get("HOST", "0.0.0.0").strip()
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
SERVER_VERSION = "1.0.0"

MAX_TOKENS = int(os.environ.get("MAX_TOKENS", "5"))
WORLD_EXTENT = float(os.environ.get("WORLD_EXTENT", "15"))
SPAWN_HEIGHT = 1.0
MAX_NAME_LENGTH = 24
COLOR_PALETTE: tuple[str, ...] = ("#FF6B6B", "#4ECDC4", "#FFD166", "#06D6A0", "#118AB2", "#EF476F")

# container id -> (x, z)
CONTAINER_LAYOUT: dict[str, tuple[float, float]] = {
    "chest1": (10.0, 10.0),
    "chest2": (-10.0, 10.0),
    "chest3": (10.0, -10.0),
    "chest4": (-10.0, -10.0),
}

IDLE_TIMEOUT_SECONDS = float(os.environ.get("IDLE_TIMEOUT_SECONDS", "600"))
IDLE_SWEEP_INTERVAL_SECONDS = float(os.environ.get("IDLE_SWEEP_INTERVAL_SECONDS", "300"))
STATUS_INTERVAL_SECONDS = float(os.environ.get("STATUS_INTERVAL_SECONDS", "30"))
SHUTDOWN_GRACE_SECONDS = float(os.environ.get("SHUTDOWN_GRACE_SECONDS", "1.0"))
OUTBOUND_QUEUE_SIZE = int(os.environ.get("OUTBOUND_QUEUE_SIZE", "256"))

ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get(
        "ALLOWED_ORIGINS",
        "https://tymbochka50-art.github.io,"
        "http://localhost:3000,"
        "http://127.0.0.1:5500,"
        "http://localhost:8080",
    ).split(",")
    if origin.strip()
]
