"""Clipboard utilities for vaultfx.

Provides clipboard copy with auto-clear of copied secrets.
"""

from __future__ import annotations

import threading
from typing import Callable

import pyperclip

from vaultfx.core.errors import ClipboardUnavailableError
from vaultfx.utils.logging import get_logger

# Default clear timeout in seconds
DEFAULT_CLEAR_TIMEOUT = 30

logger = get_logger("clipboard")


def _write(text: str) -> None:
    """Put text on the system clipboard.

    Raises:
        ClipboardUnavailableError: If no clipboard mechanism is available.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardUnavailableError(str(e)) from e


class Clipboard:
    """System clipboard with a single pending auto-clear timer.

    Attributes:
        clear_after: Seconds before copied text is cleared. 0 disables.
    """

    def __init__(
        self,
        clear_after: int = DEFAULT_CLEAR_TIMEOUT,
        on_clear: Callable[[], None] | None = None,
    ) -> None:
        self.clear_after = clear_after
        self._on_clear = on_clear
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def copy(self, text: str, auto_clear: bool = True) -> bool:
        """Copy text to the clipboard.

        Args:
            text: Text to copy.
            auto_clear: Clear the clipboard after ``clear_after`` seconds.
                Any earlier timer is replaced.

        Returns:
            True if successful, False if the clipboard is unavailable.
        """
        try:
            _write(text)
        except ClipboardUnavailableError as e:
            logger.error("Clipboard not available: %s", e)
            return False

        if auto_clear and self.clear_after > 0:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                self._timer = threading.Timer(self.clear_after, self._auto_clear)
                self._timer.daemon = True
                self._timer.start()
        return True

    def _auto_clear(self) -> None:
        self.clear()
        if self._on_clear:
            self._on_clear()

    def clear(self) -> bool:
        """Clear the clipboard contents and cancel any pending timer.

        Returns:
            True if successful, False otherwise.
        """
        self.cancel_auto_clear()
        try:
            _write("")
        except ClipboardUnavailableError:
            return False
        logger.debug("Clipboard cleared")
        return True

    def cancel_auto_clear(self) -> None:
        """Cancel any pending auto-clear timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
