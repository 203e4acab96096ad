"""Vault screen for vaultfx - the single browsing screen.

Input is translated to actions by ``vaultfx.keymap`` and applied by the
app's dispatcher; the widgets only render AppState.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen

from vaultfx.keymap import action_for_click, action_for_key, action_for_scroll
from vaultfx.widgets.overlays import ModeOverlay
from vaultfx.widgets.panels import DetailsPanel, EntryList, SearchLine, StatusBar, TabBar

if TYPE_CHECKING:
    from vaultfx.app import VaultFXApp


class VaultScreen(Screen):
    """Tabs, search line, entry list, details panel and status bar."""

    AUTO_FOCUS = None

    def compose(self) -> ComposeResult:
        """Create the vault screen layout."""
        with Vertical(id="vault-main"):
            yield TabBar(id="tab-bar")
            yield SearchLine(id="search-line")
            with Horizontal(id="vault-body"):
                yield EntryList(id="entry-list")
                yield DetailsPanel(id="details-panel")
            yield StatusBar(id="status-bar")
        yield ModeOverlay(id="mode-overlay")

    def on_mount(self) -> None:
        self.refresh_view()

    def on_resize(self, _event: events.Resize) -> None:
        self.call_after_refresh(self.refresh_view)

    def refresh_view(self) -> None:
        """Redraw every widget from the current state."""
        app: VaultFXApp = self.app  # type: ignore[assignment]
        state = app.state

        details = self.query_one("#details-panel", DetailsPanel)
        details.display = state.details_visible

        self.query_one("#tab-bar", TabBar).render_state(state)
        self.query_one("#search-line", SearchLine).render_state(state)
        self.query_one("#entry-list", EntryList).render_state(state)
        if state.details_visible:
            details.render_state(state)
        self.query_one("#status-bar", StatusBar).render_state(state)
        self.query_one("#mode-overlay", ModeOverlay).render_state(
            state, unlocking=app.orchestrator.unlocking
        )

    # --- Input ---

    def on_key(self, event: events.Key) -> None:
        app: VaultFXApp = self.app  # type: ignore[assignment]
        action = action_for_key(app.state, event.key, event.character)
        if action is None:
            return
        event.stop()
        event.prevent_default()
        app.apply(action)

    def on_click(self, event: events.Click) -> None:
        if event.button != 1:
            return
        app: VaultFXApp = self.app  # type: ignore[assignment]
        if not app.state.modes.is_normal:
            return
        action = action_for_click(app.state, event.screen_x, event.screen_y)
        if action is not None:
            app.apply(action)

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        app: VaultFXApp = self.app  # type: ignore[assignment]
        app.apply(action_for_scroll(up=True))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        app: VaultFXApp = self.app  # type: ignore[assignment]
        app.apply(action_for_scroll(up=False))
