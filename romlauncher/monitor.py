"""Runtime monitoring and logging helpers for the ROM launcher."""

from __future__ import annotations

import faulthandler
import logging
import signal
import sys
import threading
import traceback
from datetime import date
from pathlib import Path
from typing import Callable, Optional

LOGGER_NAME = "romlauncher"

_INITIALIZED = False
_FAULT_HANDLER_FILE = None
_FILE_HANDLER: Optional[logging.Handler] = None
_SESSION_LOG_DATE: Optional[date] = None
_LOG_DIR: Optional[Path] = None
_PREVIOUS_HOOKS: dict = {}


def _default_log_path() -> Path:
    if _LOG_DIR is not None:
        base = _LOG_DIR
    else:
        from .config import DEFAULT_CONFIG
        base = Path(DEFAULT_CONFIG["log_dir"])
    base.mkdir(parents=True, exist_ok=True)
    session_day = _SESSION_LOG_DATE or date.today()
    return base / f"runtime-{session_day.isoformat()}.log"


def get_log_path() -> Path:
    """Return the active runtime log path for this session."""
    return _default_log_path()


def setup_runtime_monitor(
    app_name: str = LOGGER_NAME,
    log_dir: Optional[str] = None,
    level: int = logging.INFO,
    install_hooks: bool = True,
) -> logging.Logger:
    """Initialize process-wide logging once; later calls return the same logger."""
    global _INITIALIZED, _SESSION_LOG_DATE, _LOG_DIR, _FAULT_HANDLER_FILE, _FILE_HANDLER
    logger = logging.getLogger(app_name)

    if _INITIALIZED:
        return logger

    if log_dir:
        _LOG_DIR = Path(log_dir)

    logger.setLevel(level)
    logger.propagate = False

    if _SESSION_LOG_DATE is None:
        _SESSION_LOG_DATE = date.today()

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_path = _default_log_path()
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    # low-level crash dumps to a dedicated file
    crash_log = log_path.with_name("crash.log")
    _FAULT_HANDLER_FILE = crash_log.open("a", encoding="utf-8")
    faulthandler.enable(file=_FAULT_HANDLER_FILE)

    logger.info("Runtime monitor initialized")
    logger.info("Log file: %s", log_path)

    if install_hooks:
        _install_exception_hooks(logger)

    _INITIALIZED = True
    return logger


def shutdown_runtime_monitor(app_name: str = LOGGER_NAME) -> None:
    """Flush and detach the monitor's file handler so a later setup starts clean."""
    global _INITIALIZED, _FAULT_HANDLER_FILE, _FILE_HANDLER, _SESSION_LOG_DATE, _LOG_DIR
    logger = logging.getLogger(app_name)
    if _INITIALIZED:
        logger.info("Runtime monitor shutting down")
    if _FILE_HANDLER is not None:
        _FILE_HANDLER.flush()
        _FILE_HANDLER.close()
        logger.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER = None

    if _FAULT_HANDLER_FILE is not None:
        faulthandler.disable()
        _FAULT_HANDLER_FILE.close()
        _FAULT_HANDLER_FILE = None

    if _PREVIOUS_HOOKS:
        sys.excepthook = _PREVIOUS_HOOKS.pop("sys")
        threading.excepthook = _PREVIOUS_HOOKS.pop("thread")

    _SESSION_LOG_DATE = None
    _LOG_DIR = None
    _INITIALIZED = False


def _install_exception_hooks(logger: logging.Logger) -> None:
    def _print_to_terminal(exc_type, exc_value, exc_tb, *, prefix: str | None = None) -> None:
        stream = getattr(sys, "__stderr__", None) or sys.stderr
        if stream is None:
            return
        try:
            if prefix:
                print(prefix, file=stream)
            traceback.print_exception(exc_type, exc_value, exc_tb, file=stream)
            stream.flush()
        except OSError:
            pass

    def _sys_hook(exc_type, exc_value, exc_tb):
        if exc_type and issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        _print_to_terminal(exc_type, exc_value, exc_tb, prefix="[romlauncher] Unhandled exception")

    def _thread_hook(args: threading.ExceptHookArgs):
        thread_name = args.thread.name if args.thread else "<unknown>"
        logger.critical(
            "Unhandled thread exception in %s",
            thread_name,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        _print_to_terminal(
            args.exc_type,
            args.exc_value,
            args.exc_traceback,
            prefix=f"[romlauncher] Unhandled thread exception ({thread_name})",
        )

    _PREVIOUS_HOOKS["sys"] = sys.excepthook
    _PREVIOUS_HOOKS["thread"] = threading.excepthook
    sys.excepthook = _sys_hook
    threading.excepthook = _thread_hook


def install_shutdown_hooks(on_shutdown: Callable[[], None], *, logger: Optional[logging.Logger] = None) -> None:
    """Run on_shutdown once on SIGINT/SIGTERM, then exit the process."""
    log = logger or logging.getLogger(LOGGER_NAME)
    fired = threading.Event()

    def _signal_handler(signum, _frame):
        log.warning("Received signal %s, shutting down gracefully", signum)
        if not fired.is_set():
            fired.set()
            on_shutdown()
        raise SystemExit(0)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _signal_handler)
        except (ValueError, OSError):
            log.debug("Could not install signal handler for %s", sig)


def monitor_action(action: str, *, logger: Optional[logging.Logger] = None) -> None:
    """Emit a real-time action event."""
    (logger or logging.getLogger(LOGGER_NAME)).info("action: %s", action)
