"""Logging and console setup for CLI"""

import logging
import os

from rich.console import Console

from settings import LOG_LEVEL
from utils.debug_console import create_debug_console, setup_debug_logger

DEBUG_LOG_FILE = "qwen_chat_debug.log"


def configure_logging(debug: bool, log_file: str = DEBUG_LOG_FILE) -> Console:
    """
    Configure the root logger and return the console the CLI prints to

    Without --debug only warnings (or LOG_LEVEL, if stricter) reach stderr so
    they don't interleave with streamed answers. With --debug everything is
    appended to the debug log file, console output included.

    Args:
        debug: Whether debug mode is enabled
        log_file: Debug log path

    Returns:
        Console instance (either regular or debug-capturing)
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    stderr_handler = logging.StreamHandler()
    stderr_level = logging.getLevelName(str(LOG_LEVEL).upper())
    if not isinstance(stderr_level, int):
        stderr_level = logging.INFO
    stderr_handler.setLevel(max(stderr_level, logging.WARNING))
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if not debug:
        root_logger.setLevel(stderr_level)
        return Console()

    log_file = os.path.abspath(log_file)
    root_logger.setLevel(logging.DEBUG)
    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    debug_logger = setup_debug_logger(log_file)
    debug_logger.debug("[CLI] ===== CLI SESSION STARTED =====")
    logging.getLogger(__name__).info(f"Debug logging enabled - appending to {log_file}")

    return create_debug_console(debug_enabled=True, debug_logger=debug_logger)
