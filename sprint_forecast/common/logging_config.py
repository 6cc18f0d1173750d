from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int | str = logging.INFO, log_dir: str | None = None) -> None:
    """Configure standard library logging for the CLI and the HTTP service.

    ``level`` accepts either a logging constant or its name ("DEBUG", "info").
    If log_dir is provided, records also go to '<log_dir>/run.log'.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        Path(log_dir).expanduser().mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_dir).expanduser() / "run.log", encoding="utf-8"))

    logging.basicConfig(level=level, format=DEFAULT_LOG_FORMAT, handlers=handlers, force=True)
