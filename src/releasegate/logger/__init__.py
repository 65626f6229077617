from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from releasegate.env import command_logs_dir, get_logging_env
from releasegate.logger import state as _state
from releasegate.logger.annotations import AnnotationHandler, build_annotation_handler
from releasegate.logger.console import build_console_handler
from releasegate.logger.file import build_file_handler, repoint_file_handler
from releasegate.logger.retention import enforce_retention


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _level_to_int(level: str | int) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(str(level).upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def _ensure_run_id() -> str:
    run_id = os.environ.get("RELEASEGATE_RUN_ID")
    if not run_id:
        run_id = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        os.environ["RELEASEGATE_RUN_ID"] = run_id
    return run_id


def _target_logfile() -> Path:
    command = os.environ.get("RELEASEGATE_COMMAND") or "bootstrap"
    run_id = _ensure_run_id()
    return command_logs_dir(command) / f"{command}-{run_id}.log"


def _squelch_noisy_loggers() -> None:
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def init_logging() -> None:
    """
    Initialize logging for the entire process.

    - Handlers are attached ONLY to the root logger.
    - Named loggers inherit via propagation.
    - Safe to call multiple times; file handler is repointed, not stacked.
    """
    env = get_logging_env()
    _squelch_noisy_loggers()

    root = logging.getLogger()
    logfile = _target_logfile()

    log_dir = logfile.parent
    enforce_retention(log_dir, int(env.log_retention))

    # Base level from env, but verbose forces DEBUG everywhere.
    root_level = logging.DEBUG if env.verbose else _level_to_int(env.log_level)

    if _state.INITIALIZED and _state.LOG_FILE_PATH == logfile:
        root.setLevel(root_level)
        return

    # Replace only what a previous call installed.
    file_handler = _state.FILE_HANDLER
    for h in _state.HANDLERS:
        root.removeHandler(h)
        if h is not file_handler:
            h.close()

    root.setLevel(root_level)

    if file_handler is not None:
        repoint_file_handler(file_handler, logfile)
    else:
        file_handler = build_file_handler(logfile)

    handlers: list[logging.Handler] = [file_handler]
    if not env.quiet:
        handlers.append(build_console_handler(root_level))
    if env.annotations:
        handlers.append(build_annotation_handler())

    for h in handlers:
        root.addHandler(h)

    _state.FILE_HANDLER = file_handler
    _state.HANDLERS = handlers
    _state.INITIALIZED = True
    _state.RUN_ID = os.environ.get("RELEASEGATE_RUN_ID")
    _state.LOG_DIR = log_dir
    _state.LOG_FILE_PATH = logfile


__all__ = [
    "AnnotationHandler",
    "get_logger",
    "init_logging",
]
