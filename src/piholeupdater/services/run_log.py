"""Append-only run log with command audit entries."""

import logging
import os
from datetime import datetime
from typing import Optional

CMD = 21
EXIT = 22
PHASE = 23

logging.addLevelName(CMD, "CMD")
logging.addLevelName(EXIT, "EXIT")
logging.addLevelName(PHASE, "PHASE")


class RunLogFormatter(logging.Formatter):
    """Formats entries as ``timestamp [LEVEL] message``."""

    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.WARNING:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = "WARN"
        return super().format(record)


class ConsoleNoiseFilter(logging.Filter):
    """Keeps CMD/EXIT audit entries in the log file only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno not in (CMD, EXIT)


class RunLogService:
    """Owns the per-run log file attached to the application logger."""

    def __init__(self, logger: logging.Logger, console, log_dir: str, log_file: Optional[str] = None):
        self.logger = logger
        self.console = console
        self.log_dir = log_dir
        self.log_file = log_file or os.path.join(
            log_dir, f"update-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
        )
        self._handler: Optional[logging.Handler] = None

    def open(self) -> str:
        os.makedirs(os.path.dirname(self.log_file) or ".", exist_ok=True)
        handler = logging.FileHandler(self.log_file, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(RunLogFormatter())
        self.logger.addHandler(handler)
        self._handler = handler
        return self.log_file

    def close(self):
        if self._handler is None:
            return
        self.logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def phase(self, title: str):
        self.logger.log(PHASE, title)
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]")
