"""Process entry point for vaultfx.

Sets up titles, logging and signal handlers, runs the Textual app and makes
sure nothing sensitive is left on the clipboard when the process ends.
"""

from __future__ import annotations

import signal
import sys
from types import FrameType

import setproctitle

from vaultfx.app import VaultFXApp
from vaultfx.core.config import load_config
from vaultfx.utils.clipboard import Clipboard
from vaultfx.utils.logging import get_logger, setup_logging

TERMINAL_TITLE = "vaultfx - Bitwarden vault"

# Reachable from signal handlers, which get no app reference
_clipboard: Clipboard | None = None  # pylint: disable=invalid-name

logger = get_logger("cli")


def set_terminal_title(title: str) -> None:
    """Write an OSC 0 sequence so the tab shows the app name."""
    sys.stdout.write(f"\033]0;{title}\007")
    sys.stdout.flush()


def _signal_handler(signum: int, _frame: FrameType | None) -> None:
    """Clear the clipboard and exit with the conventional signal status."""
    if _clipboard is not None:
        _clipboard.clear()
    logger.info("Terminated by signal %d", signum)

    # SIGINT (Ctrl-C) = 130, SIGTERM = 143
    sys.exit(128 + signum)


def _setup_signal_handlers() -> None:
    """Install the SIGINT and SIGTERM handlers."""
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)


def main() -> int:
    """Run vaultfx until the user quits.

    Returns:
        Process exit status.
    """
    global _clipboard  # pylint: disable=global-statement

    # Show "vaultfx" in ps and the tab instead of "python"
    setproctitle.setproctitle("vaultfx")
    set_terminal_title(TERMINAL_TITLE)

    config = load_config()
    try:
        setup_logging(config.log_dir, config.log_level)
    except OSError as e:
        print(f"Warning: Failed to initialize logger: {e}", file=sys.stderr)
        print("Continuing without file logging...", file=sys.stderr)

    _setup_signal_handlers()

    logger.info("Application starting")
    app = VaultFXApp(config)
    _clipboard = app.clipboard
    try:
        app.run()
    finally:
        app.clipboard.clear()
        logger.info("Application shutting down")

    return 0


if __name__ == "__main__":
    sys.exit(main())
