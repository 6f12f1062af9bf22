"""
Configuration management for Sage.

Loads settings from environment variables and provides configuration objects.
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional


def _env_float(key: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    # 0 or negative disables the timeout
    return value if value > 0 else None


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Sage configuration."""

    python_path: str = sys.executable
    kernel_name: str = "python3"
    display_name: str = "Python 3"
    execute_timeout: Optional[float] = None
    startup_timeout: Optional[float] = 30.0
    dropdown_size: int = 10
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    log_json: bool = False
    enable_logging: bool = False

    def __init__(self):
        """Initialize config from environment variables."""
        self.python_path = os.getenv("SAGE_PYTHON") or sys.executable
        self.kernel_name = os.getenv("SAGE_KERNEL_NAME", "python3")
        self.display_name = os.getenv("SAGE_KERNEL_DISPLAY_NAME", "Python 3")
        self.execute_timeout = _env_float("SAGE_EXECUTE_TIMEOUT", None)
        self.startup_timeout = _env_float("SAGE_STARTUP_TIMEOUT", 30.0)
        self.dropdown_size = _env_int("SAGE_DROPDOWN_SIZE", 10)
        self.log_level = os.getenv("SAGE_LOG_LEVEL", "INFO").upper()
        self.log_dir = os.getenv("SAGE_LOG_DIR") or None
        self.log_json = _env_bool("SAGE_LOG_JSON", False)
        self.enable_logging = _env_bool("SAGE_LOGGING", False)
