"""Rich console that mirrors what the CLI prints into the debug log.

With --debug the chat transcript, login prompts and status tables end up in
the same file as the client's request logging.
"""

import io
import logging
import re
from typing import Optional

from rich.console import Console as RichConsole

_ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


class DebugCapturingConsole(RichConsole):
    """Rich Console that also logs a plain-text copy of every print"""

    def __init__(self, debug_logger: Optional[logging.Logger] = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger
        self._log_prefix = "[CONSOLE] "

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        if self.debug_logger and self.debug_logger.isEnabledFor(logging.DEBUG):
            plain_text = self.render_plain(*objects, **kwargs)
            if plain_text.strip():
                self.debug_logger.debug(f"{self._log_prefix}{plain_text}")

    def render_plain(self, *objects, **kwargs) -> str:
        """Render objects the way print would, minus markup and colour

        Args:
            *objects: Objects to render
            **kwargs: Keyword arguments from the print call

        Returns:
            Plain text without trailing whitespace
        """
        # Streamed deltas are printed with end="", keep them on one log line
        kwargs.pop("end", None)

        buffer = io.StringIO()
        RichConsole(
            file=buffer,
            force_terminal=False,
            width=self.width,
            legacy_windows=False,
        ).print(*objects, **kwargs)

        return _ANSI_ESCAPE.sub('', buffer.getvalue()).rstrip()


def create_debug_console(debug_enabled: bool = False,
                         debug_logger: Optional[logging.Logger] = None) -> RichConsole:
    """
    Create the console for the CLI.

    Args:
        debug_enabled: Whether --debug was given
        debug_logger: Logger receiving the captured output

    Returns:
        DebugCapturingConsole in debug mode, a plain rich Console otherwise
    """
    if debug_enabled and debug_logger:
        return DebugCapturingConsole(debug_logger=debug_logger)
    return RichConsole()


def setup_debug_logger(log_file: str = "qwen_chat_debug.log") -> logging.Logger:
    """
    Set up the logger that receives captured console output.

    Args:
        log_file: Path to debug log file, shared with the root logger's file handler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("debug_console")
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    logger.addHandler(file_handler)

    # The root logger writes to the same file
    logger.propagate = False

    return logger
