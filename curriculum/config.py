"""Curriculum queue configuration and environment setup.

This module provides centralized configuration for the batch queue,
including development mode detection, queue tuning knobs read from the
environment, and log handler installation.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent


def is_dev_mode() -> bool:
    """Check if running in development mode.

    Returns:
        True if CURRICULUM_MODE is set to 'dev', False otherwise.
    """
    return os.getenv("CURRICULUM_MODE", "prod").lower() == "dev"


class QueueSettings(BaseSettings):
    """Tuning knobs for the batch queue scheduler.

    Every field reads ``CURRICULUM_<FIELD>`` from the environment or .env,
    e.g. ``CURRICULUM_MAX_ATTEMPTS=5``.
    """

    model_config = SettingsConfigDict(env_prefix="CURRICULUM_", env_file=".env", extra="ignore")

    max_attempts: int = Field(
        default=3, ge=1, description="Generation attempts per phase before an item errors"
    )
    base_delay: float = Field(
        default=2.0, ge=0.0, description="Backoff base in seconds"
    )
    max_delay: float = Field(
        default=30.0, ge=0.0, description="Upper bound for a single backoff wait"
    )
    circuit_threshold: int = Field(
        default=3, ge=1, description="Consecutive item failures that trip the breaker"
    )
    cooldown: float = Field(
        default=1.0, ge=0.0, description="Pause between generation calls in seconds"
    )
    state_dir: Path = Field(
        default=PROJECT_ROOT / ".curriculum",
        description="Directory holding queue snapshots",
    )


def get_log_dir() -> Path:
    """Resolve the log directory (CURRICULUM_LOG_DIR, default logs/)."""
    return Path(os.getenv("CURRICULUM_LOG_DIR", "logs"))


def configure_logging(name: Optional[str] = None, level: Optional[int] = None) -> None:
    """Install per-module file logging plus a console handler.

    Safe to call more than once; handlers are only added the first time.

    Args:
        name: Optional run identifier; when given, a logging run is started
            so each module log rotates on its first write.
        level: Root log level (DEBUG in dev mode, INFO otherwise)
    """
    from curriculum.logging import ModuleDispatchHandler, start_run

    root = logging.getLogger()
    if level is None:
        level = logging.DEBUG if is_dev_mode() else logging.INFO
    root.setLevel(level)

    if not any(isinstance(h, ModuleDispatchHandler) for h in root.handlers):
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = ModuleDispatchHandler(log_dir)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(file_handler)

        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root.addHandler(console)

    if name:
        start_run(name)
