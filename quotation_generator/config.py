"""Runtime configuration loaded from environment variables, plus persisted preferences."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Optional

logger = logging.getLogger(__name__)


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


DEFAULT_MAX_CONCURRENT_RENDERS = max(2, min(16, os.cpu_count() or 2))
MAX_CONCURRENT_RENDERS = env_int(
    "QUOTATION_MAX_CONCURRENT_RENDERS",
    DEFAULT_MAX_CONCURRENT_RENDERS,
    minimum=1,
)
MAX_INFLIGHT_RENDERS = env_int(
    "QUOTATION_MAX_INFLIGHT_RENDERS",
    max(32, MAX_CONCURRENT_RENDERS * 4),
    minimum=1,
)
RENDER_QUEUE_TIMEOUT_MS = env_int("QUOTATION_RENDER_QUEUE_TIMEOUT_MS", 60000, minimum=0)
RENDER_TIMEOUT_MS = env_int("QUOTATION_RENDER_TIMEOUT_MS", 120000, minimum=1000)

# Logo and seal images travel inline as data URLs.
MAX_BODY_BYTES = env_int("QUOTATION_MAX_BODY_BYTES", 16 * 1024 * 1024, minimum=1024)
MAX_PAGES = env_int("QUOTATION_MAX_PAGES", 200, minimum=1)
LISTEN_BACKLOG = env_int("QUOTATION_LISTEN_BACKLOG", 128, minimum=1)

LOG_LEVEL = env_str("QUOTATION_LOG_LEVEL", "INFO").upper()

STORAGE_DIR = env_str(
    "QUOTATION_STORAGE_DIR",
    os.path.join(os.path.expanduser("~"), ".quotation_generator", "quotations"),
)
AUTH_USERS = env_str("QUOTATION_AUTH_USERS", "")
AUTH_DOMAIN = env_str("QUOTATION_AUTH_DOMAIN", "example.com")
COMPANY_TAG = env_str("QUOTATION_COMPANY_TAG", "")

PREFERENCES_PATH = env_str(
    "QUOTATION_PREFERENCES_PATH",
    os.path.join(os.path.expanduser("~"), ".quotation_generator", "preferences.json"),
)
DEFAULT_THEME_COLOR = "#1f2937"


@dataclass
class Preferences:
    theme_color: str = DEFAULT_THEME_COLOR


def load_preferences(path: Optional[str] = None) -> Preferences:
    path = path or PREFERENCES_PATH
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except FileNotFoundError:
        return Preferences()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable preferences file %s: %s", path, exc)
        return Preferences()

    if not isinstance(raw, dict):
        return Preferences()
    theme = raw.get("theme_color")
    if not isinstance(theme, str) or not theme.strip():
        theme = DEFAULT_THEME_COLOR
    return Preferences(theme_color=theme.strip())


def save_preferences(preferences: Preferences, path: Optional[str] = None) -> None:
    path = path or PREFERENCES_PATH
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(asdict(preferences), handle)
    os.replace(tmp_path, path)
