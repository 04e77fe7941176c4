"""Module-based logging with run-based rotation.

Usage:
    # At run entry points (scheduler runs, tests):
    from curriculum.logging import start_run, end_run

    start_run("run-123")
    try:
        ...
    finally:
        end_run()

    # In modules:
    import logging
    logger = logging.getLogger(__name__)

Log files live in logs/ (CURRICULUM_LOG_DIR):
    - logs/batch-queue.log, logs/cli.log, ... (per module group)
    - logs/run-3p.log (third-party libraries)
    - logs/*.previous.log (previous run)
"""

from curriculum.logging.handlers import ModuleDispatchHandler
from curriculum.logging.run_manager import (
    MODULE_TO_LOG,
    THIRD_PARTY_LOG,
    end_run,
    get_current_run_id,
    module_to_log_name,
    start_run,
)

__all__ = [
    "start_run",
    "end_run",
    "get_current_run_id",
    "module_to_log_name",
    "ModuleDispatchHandler",
    "MODULE_TO_LOG",
    "THIRD_PARTY_LOG",
]
