"""vaultfx - Main Textual Application.

Wires AppState, the CLI orchestrator and the action dispatcher to a single
vault screen, and drives everything from one UI tick.
"""

from __future__ import annotations

from typing import Callable

from textual.app import App
from textual.binding import Binding

from vaultfx.core.actions import Action, Dispatcher
from vaultfx.core.cache import VaultCache
from vaultfx.core.config import AppConfig
from vaultfx.core.orchestrator import Spawner, SyncOrchestrator
from vaultfx.core.otp import OtpLifecycle
from vaultfx.core.session import SessionStore
from vaultfx.core.state import AppState, MessageLevel
from vaultfx.core.vault_cli import BitwardenCli
from vaultfx.keymap import action_for_key
from vaultfx.screens.vault import VaultScreen
from vaultfx.search.engine import FilterEngine
from vaultfx.utils.clipboard import Clipboard
from vaultfx.utils.logging import get_logger

logger = get_logger("app")


class VaultFXApp(App):
    """vaultfx - browse your Bitwarden vault from the terminal."""

    CSS_PATH = "styles/vaultfx.tcss"
    TITLE = "vaultfx"
    ENABLE_COMMAND_PALETTE = False

    # Keys Textual would otherwise claim for itself
    BINDINGS = [
        Binding("ctrl+c", "handle_key('ctrl+c')", "Quit", priority=True, show=False),
        Binding("tab", "handle_key('tab')", "Next tab", priority=True, show=False),
        Binding("shift+tab", "handle_key('shift+tab')", "Previous tab", priority=True, show=False),
    ]

    def __init__(
        self,
        config: AppConfig,
        clipboard: Clipboard | None = None,
        cli: BitwardenCli | None = None,
        cache: VaultCache | None = None,
        sessions: SessionStore | None = None,
        spawn: Spawner | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.state = AppState(
            engine=FilterEngine(fuzzy=config.fuzzy_search, case_sensitive=config.case_sensitive),
            otp=OtpLifecycle(debounce=config.otp_debounce),
            status_ttl=config.status_ttl,
        )
        self.clipboard = clipboard or Clipboard(
            config.clipboard_clear_seconds, on_clear=self._on_clipboard_cleared
        )

        sessions = sessions or SessionStore()
        self.orchestrator = SyncOrchestrator(
            self.state,
            cli or BitwardenCli(config.bw_binary, sessions.load()),
            cache or VaultCache(config.cache_file, enabled=config.cache_enabled),
            sessions,
            self.clipboard,
            spawn or self._spawn_worker,
        )
        self.dispatcher = Dispatcher(
            self.state, self.orchestrator, self.clipboard, page_size=config.page_size
        )

    def on_mount(self) -> None:
        """Called when app is mounted."""
        self.push_screen(VaultScreen())
        self.orchestrator.start()
        self.set_interval(self.config.tick_interval, self._tick)

    def _spawn_worker(self, task: Callable[[], None]) -> None:
        self.run_worker(task, thread=True, group="bw")

    def _tick(self) -> None:
        self.orchestrator.tick()
        self._refresh_view()

    def _refresh_view(self) -> None:
        if isinstance(self.screen, VaultScreen):
            self.screen.refresh_view()

    def apply(self, action: Action) -> None:
        """Dispatch an action and redraw, or exit when it asks to quit."""
        if not self.dispatcher.dispatch(action):
            logger.info("Exiting on %s", type(action).__name__)
            self.exit()
            return
        self._refresh_view()

    def action_handle_key(self, key: str) -> None:
        """Route a bound key through the keymap like any other key."""
        action = action_for_key(self.state, key)
        if action is not None:
            self.apply(action)

    def _on_clipboard_cleared(self) -> None:
        # Runs on the clipboard timer thread
        if self.is_running:
            self.call_from_thread(self.state.set_status, "Clipboard cleared", MessageLevel.INFO)
