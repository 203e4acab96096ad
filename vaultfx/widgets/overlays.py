"""Overlays for the modal session modes.

The overlay is hidden in Normal mode. In the other modes it covers the
screen with the password prompt, the save-token question or the fatal
notice.
"""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from vaultfx.core.state import AppState, FatalError, PasswordPrompt, SaveTokenPrompt


class ModeOverlay(Static):
    """Single overlay widget rendered from the active session mode."""

    def render_state(self, state: AppState, unlocking: bool = False) -> None:
        mode = state.modes.mode
        if isinstance(mode, PasswordPrompt):
            self.update(self._password_prompt(mode, unlocking))
        elif isinstance(mode, SaveTokenPrompt):
            self.update(self._save_token_prompt())
        elif isinstance(mode, FatalError):
            self.update(self._fatal(mode))
        else:
            self.display = False
            return
        self.display = True

    @staticmethod
    def _password_prompt(mode: PasswordPrompt, unlocking: bool) -> Text:
        text = Text()
        text.append(" ≡ VAULT LOCKED\n\n", style="bold #f59e0b")
        text.append("Master password\n", style="#94a3b8")
        text.append(f"  {'•' * len(mode.buffer)}", style="#e0e0e0")
        text.append("█\n\n", style="#00d4ff")
        if unlocking:
            text.append("⏳ Unlocking...\n\n", style="#00d4ff")
        elif mode.error:
            text.append(f"✗ {mode.error}\n\n", style="#ef4444")
        text.append("ENTER", style="bold #00d4ff")
        text.append(" Unlock   ", style="#64748b")
        text.append("ESC", style="bold #00d4ff")
        text.append(" Quit", style="#64748b")
        return text

    @staticmethod
    def _save_token_prompt() -> Text:
        text = Text()
        text.append(" ≡ VAULT UNLOCKED\n\n", style="bold #22c55e")
        text.append("Save the session token to your environment (BW_SESSION)\n", style="#e0e0e0")
        text.append("so future sessions start unlocked?\n\n", style="#e0e0e0")
        text.append("Y", style="bold #00d4ff")
        text.append(" Save   ", style="#64748b")
        text.append("N", style="bold #00d4ff")
        text.append(" Don't save", style="#64748b")
        return text

    @staticmethod
    def _fatal(mode: FatalError) -> Text:
        text = Text()
        text.append(" ≡ CANNOT OPEN VAULT\n\n", style="bold #ef4444")
        text.append(f"{mode.message}\n\n", style="#e0e0e0")
        text.append("Q", style="bold #00d4ff")
        text.append(" Quit", style="#64748b")
        return text
