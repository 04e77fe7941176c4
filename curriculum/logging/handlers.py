"""Logging handler that fans records out to per-module files.

Handlers write synchronously; a single record costs tens of microseconds,
which is negligible next to the generation calls the scheduler awaits.
"""

import logging
from pathlib import Path
from typing import TextIO

from curriculum.logging.run_manager import module_to_log_name, should_rotate


class ModuleDispatchHandler(logging.Handler):
    """Route records to ``<log_dir>/<log_name>.log`` by logger name.

    Files open lazily and stay cached, one handle per log name. On the
    first record of a run, ``<name>.log`` is renamed to
    ``<name>.previous.log`` (replacing any older one) before writing.
    """

    def __init__(self, log_dir: Path):
        super().__init__()
        self.log_dir = log_dir
        self._streams: dict[str, TextIO] = {}

    def emit(self, record: logging.LogRecord) -> None:
        try:
            log_name = module_to_log_name(record.name)
            if should_rotate(log_name):
                self._rotate(log_name)

            stream = self._stream_for(log_name)
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def _rotate(self, log_name: str) -> None:
        stream = self._streams.pop(log_name, None)
        if stream is not None:
            stream.close()

        current = self.log_dir / f"{log_name}.log"
        previous = self.log_dir / f"{log_name}.previous.log"
        if current.exists():
            current.replace(previous)

    def _stream_for(self, log_name: str) -> TextIO:
        if log_name not in self._streams:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            path = self.log_dir / f"{log_name}.log"
            self._streams[log_name] = path.open("a", encoding="utf-8")
        return self._streams[log_name]

    def close(self) -> None:
        self.acquire()
        try:
            for stream in self._streams.values():
                try:
                    stream.close()
                except OSError:
                    pass
            self._streams.clear()
        finally:
            self.release()
        super().close()
