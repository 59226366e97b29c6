"""
Logging Utilities for the deck builder

Provides run-scoped logging configuration, terminal output capture and
structured exception logging for CLI runs and audit trails.
"""

import logging
import sys
import traceback
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


def setup_run_logging(package_dir: str, prompt: str) -> Tuple[logging.Logger, str]:
    """
    Set up file-based logging for one package build.
    Configures the ROOT logger so every module logger inherits the file handler.

    Args:
        package_dir: Directory where the package will be written
        prompt: User request, logged for context

    Returns:
        Tuple of (run_logger instance, log_file_path)
    """
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_filename = f"run_log_{timestamp}.log"
    log_file_path = str(Path(package_dir) / log_filename)

    Path(package_dir).mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file_path, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    )
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    root_logger.addHandler(console_handler)

    run_logger = logging.getLogger('deck_run')
    run_logger.setLevel(logging.DEBUG)

    run_logger.info("=" * 70)
    run_logger.info("Deck Builder - Run Log")
    run_logger.info(f"Prompt: {prompt}")
    run_logger.info(f"Package Directory: {package_dir}")
    run_logger.info(f"Log File: {log_filename}")
    run_logger.info(f"Started: {datetime.now().isoformat()}")
    run_logger.info("=" * 70)

    return run_logger, log_file_path


@contextmanager
def capture_terminal_output(log_file_path: str):
    """
    Context manager that mirrors stdout/stderr into the run log.

    Usage:
        with capture_terminal_output(log_path):
            print("This will be logged")
    """
    log_file = open(log_file_path, 'a', encoding='utf-8')

    class TeeOutput:
        """Tee output to both console and file"""
        def __init__(self, *files):
            self.files = files

        def write(self, text):
            for f in self.files:
                f.write(text)
                f.flush()

        def flush(self):
            for f in self.files:
                f.flush()

    original_stdout = sys.stdout
    original_stderr = sys.stderr

    try:
        sys.stdout = TeeOutput(original_stdout, log_file)
        sys.stderr = TeeOutput(original_stderr, log_file)
        yield
    finally:
        sys.stdout = original_stdout
        sys.stderr = original_stderr
        log_file.close()


def log_exception(logger: logging.Logger, exc: Exception, context: str = "",
                  prompt: Optional[str] = None, **kwargs) -> None:
    """
    Log an exception with traceback and context information.

    Args:
        logger: Logger instance to use
        exc: Exception that was raised
        context: Short label for the failing step
        prompt: User request for context
        **kwargs: Additional context key-value pairs
    """
    error_msg = f"Exception occurred: {type(exc).__name__}: {str(exc)}"
    if context:
        error_msg = f"{context} - {error_msg}"

    logger.error(error_msg)
    logger.error(f"Traceback:\n{traceback.format_exc()}")

    if prompt:
        logger.error(f"Prompt: {prompt}")
    if kwargs:
        logger.error(f"Context: {kwargs}")


def get_error_info(exc: Exception, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Extract structured error information from an exception.

    Returns:
        Dictionary with error type, message, traceback, timestamp and context
    """
    info = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
        "traceback": traceback.format_exc(),
        "timestamp": datetime.now().isoformat(),
        "context": context or {},
    }
    to_dict = getattr(exc, "to_dict", None)
    if callable(to_dict):
        info["details"] = to_dict()
    return info
