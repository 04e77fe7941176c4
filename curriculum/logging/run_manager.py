"""Run-scoped log rotation bookkeeping.

A "run" is one scheduler invocation (QueueService.start_processing) or one
test module. The first record a module log receives inside a run rotates
that file, so each log holds the latest run and the one before it.

Usage:
    from curriculum.logging import start_run, end_run

    start_run("run-3f2a")
    try:
        ...
    finally:
        end_run()
"""

from contextvars import ContextVar

# ContextVars keep concurrent runs in separate asyncio tasks independent
_current_run_id: ContextVar[str | None] = ContextVar("current_run_id", default=None)
_rotated_this_run: ContextVar[set[str] | None] = ContextVar("rotated_this_run", default=None)

_module_log_cache: dict[str, str] = {}

# Longest prefix wins. Loggers outside the curriculum package and the
# test suite go to THIRD_PARTY_LOG.
MODULE_TO_LOG = {
    "curriculum.batch_queue.cli": "cli",
    "curriculum.batch_queue.generators": "generators",
    "curriculum.batch_queue": "batch-queue",
    "curriculum.config": "config",
    "curriculum.logging": "logging-internal",
    "curriculum": "curriculum",
    "testing": "testing",
}

THIRD_PARTY_LOG = "run-3p"

_SORTED_PREFIXES = sorted(MODULE_TO_LOG.keys(), key=len, reverse=True)


def start_run(run_id: str) -> None:
    """Mark the start of a run; resets per-run rotation tracking."""
    _current_run_id.set(run_id)
    _rotated_this_run.set(set())


def end_run() -> None:
    """Mark the end of a run. Missing calls are harmless."""
    _current_run_id.set(None)
    _rotated_this_run.set(None)


def get_current_run_id() -> str | None:
    """Get the current run ID, if any."""
    return _current_run_id.get()


def should_rotate(log_name: str) -> bool:
    """Return True exactly once per log file per run.

    Args:
        log_name: The log file name (without .log extension)
    """
    run_id = _current_run_id.get()
    rotated = _rotated_this_run.get()

    if run_id is None or rotated is None:
        return False

    if log_name in rotated:
        return False

    rotated.add(log_name)
    return True


def module_to_log_name(module_name: str) -> str:
    """Resolve a logger name to its log file name (cached).

    Args:
        module_name: Logger name, e.g. "curriculum.batch_queue.driver"

    Returns:
        Log file name without extension, e.g. "batch-queue"
    """
    if module_name not in _module_log_cache:
        _module_log_cache[module_name] = _compute_log_name(module_name)
    return _module_log_cache[module_name]


def _compute_log_name(module_name: str) -> str:
    for prefix in _SORTED_PREFIXES:
        if module_name == prefix or module_name.startswith(prefix + "."):
            return MODULE_TO_LOG[prefix]
    return THIRD_PARTY_LOG
