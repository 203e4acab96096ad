"""Render-only widgets for the vault screen.

Every widget is a Static that redraws itself from AppState in
``render_state``. None of them handles input; the screen translates input
into actions.
"""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from vaultfx.core.actions import TAB_ORDER
from vaultfx.core.models import (
    SECRET_CARD_NUMBER,
    SECRET_CVV,
    SECRET_NOTES,
    SECRET_PASSWORD,
    ItemType,
    VaultItem,
)
from vaultfx.core.state import AppState, MessageLevel, Rect

# Type icons (matching the tab labels)
TYPE_ICONS = {
    ItemType.LOGIN: "KEY",
    ItemType.SECURE_NOTE: "MEM",
    ItemType.CARD: "CRD",
    ItemType.IDENTITY: "ID ",
}

LEVEL_STYLES = {
    MessageLevel.INFO: "#00d4ff",
    MessageLevel.SUCCESS: "#22c55e",
    MessageLevel.WARNING: "#f59e0b",
    MessageLevel.ERROR: "#ef4444",
}

MASK = "••••••••"


def _region_rect(widget: Static) -> Rect:
    region = widget.region
    return Rect(region.x, region.y, region.width, region.height)


def _content_rect(widget: Static) -> Rect:
    region = widget.content_region
    return Rect(region.x, region.y, region.width, region.height)


class TabBar(Static):
    """Type filter tabs: All, Login, Secure Note, Card, Identity."""

    def render_state(self, state: AppState) -> None:
        line = Text()
        for i, item_type in enumerate(TAB_ORDER):
            label = "All" if item_type is None else item_type.label
            style = "bold black on #00d4ff" if item_type == state.type_filter else "#94a3b8"
            line.append(f" F{i + 1} {label} ", style=style)
            line.append(" ")
        self.update(line)


class SearchLine(Static):
    """The filter query, typed directly into the list."""

    def render_state(self, state: AppState) -> None:
        line = Text()
        line.append(" > ", style="bold #8b5cf6")
        query = state.engine.query
        if query:
            line.append(query, style="#e0e0e0")
        else:
            line.append("type to filter...", style="dim #64748b")
        line.append("█", style="#00d4ff")
        self.update(line)


class EntryList(Static):
    """Visible window of the filtered view.

    The first row is a header border; item rows follow. The window scrolls
    to keep the selection visible and its offset is written back to
    AppState for pointer hit-testing.
    """

    def _visible_rows(self) -> int:
        # Header row and footer row
        return max(1, self.size.height - 2)

    def _scroll_to_selection(self, state: AppState, rows: int) -> None:
        selected = state.engine.selected_index
        if selected is None:
            state.list_offset = 0
            return
        if selected < state.list_offset:
            state.list_offset = selected
        elif selected >= state.list_offset + rows:
            state.list_offset = selected - rows + 1

    def render_state(self, state: AppState) -> None:
        state.list_area = _region_rect(self)
        rows = self._visible_rows()
        self._scroll_to_selection(state, rows)

        view = state.engine.view
        selected = state.engine.selected_index
        content = Text()
        content.append(f" ≡ ENTRIES [{len(view)}/{len(state.engine.items)}]\n", style="bold #00d4ff")

        if not view:
            message = "No matching entries" if state.engine.items else "Vault is empty"
            content.append(f"  {message}", style="dim #64748b")
            self.update(content)
            return

        window = view[state.list_offset : state.list_offset + rows]
        for i, item in enumerate(window):
            index = state.list_offset + i
            content.append_text(self._row(item, index == selected))
            if i < len(window) - 1:
                content.append("\n")
        self.update(content)

    @staticmethod
    def _row(item: VaultItem, selected: bool) -> Text:
        row = Text()
        marker_style = "bold #00d4ff" if selected else "#475569"
        name_style = "bold black on #00d4ff" if selected else "#e0e0e0"
        row.append("▌" if selected else " ", style=marker_style)
        row.append(f"[{TYPE_ICONS[item.type]}] ", style="#8b5cf6")
        row.append("★ " if item.favorite else "  ", style="#f59e0b")
        row.append(item.name, style=name_style)
        secondary = item.username or item.card_brand or item.identity_email
        if secondary:
            row.append(f"  {secondary}", style="#64748b")
        return row


class DetailsPanel(Static):
    """Fields of the selected item. Secrets are always masked."""

    def render_state(self, state: AppState) -> None:
        state.details_area = _content_rect(self)
        state.details_rows = self._rows = {}
        item = state.selected_item
        if item is None:
            self.update(Text("No entry selected", style="dim #64748b"))
            return

        text = Text()
        text.append(" ≡ DETAILS\n\n", style="bold #00d4ff")
        text.append(f"{item.name}\n", style="bold #e0e0e0")
        text.append(f"{item.type.label}{'  ★' if item.favorite else ''}\n\n", style="#8b5cf6")

        if item.login:
            self._field(text, "Username", item.username, "Ctrl+U", copy="username")
            password = MASK if item.has_secret(SECRET_PASSWORD) else None
            self._field(text, "Password", password, "Ctrl+P", copy="password")
            if item.has_totp:
                self._field(text, "TOTP", self._otp_text(state), "Ctrl+T", copy="totp")
            for uri in item.login.uris or []:
                self._field(text, "URI", uri.uri)
        if item.card:
            self._field(text, "Brand", item.card.brand)
            self._field(text, "Cardholder", item.card.cardholder_name)
            number = item.card.masked_number if item.card.number else None
            if number is None and SECRET_CARD_NUMBER in item.redacted:
                number = MASK
            self._field(text, "Number", number, "Ctrl+N", copy="card_number")
            self._field(text, "Expires", item.card.expiry)
            cvv = MASK if item.has_secret(SECRET_CVV) else None
            self._field(text, "CVV", cvv, "Ctrl+E", copy="cvv")
        if item.identity:
            identity = item.identity
            self._field(text, "Name", identity.full_name)
            self._field(text, "Email", identity.email)
            self._field(text, "Phone", identity.phone)
            address = ", ".join(
                p for p in (identity.address1, identity.city, identity.postal_code, identity.country) if p
            )
            self._field(text, "Address", address or None)
        if item.notes:
            text.append("Notes\n", style="#64748b")
            text.append(f"{item.notes}\n\n", style="#e0e0e0")
        elif SECRET_NOTES in item.redacted:
            self._field(text, "Notes", "(loading...)")
        for custom in item.fields or []:
            self._field(text, custom.name or "Field", MASK if custom.type == 1 else custom.value)

        if not state.secrets_available:
            text.append("Secrets load after the first sync", style="dim #f59e0b")
        self.update(text)

    def _field(
        self,
        text: Text,
        label: str,
        value: str | None,
        hint: str | None = None,
        copy: str | None = None,
    ) -> None:
        if not value:
            return
        if copy:
            # Label and value rows are both click targets
            row = text.plain.count("\n")
            self._rows[row] = self._rows[row + 1] = copy
        text.append(f"{label}\n", style="#64748b")
        text.append(f"  {value}", style="#e0e0e0")
        if hint:
            text.append(f"  [{hint}]", style="dim #475569")
        text.append("\n\n")

    @staticmethod
    def _otp_text(state: AppState) -> str:
        code = state.current_otp
        if code is not None:
            return f"{code[:3]} {code[3:]}  ({state.otp.remaining()}s)"
        if state.otp.state.loading and state.otp.state.item_id == state.selected_id:
            return "fetching..."
        return "--" if state.secrets_available else "(loading...)"


class StatusBar(Static):
    """Spinner, item count, secrets state and the current status message."""

    def render_state(self, state: AppState) -> None:
        line = Text()
        spinner = state.sync.spinner
        line.append(f" {spinner or '●'} ", style="#00d4ff" if spinner else "#22c55e")
        line.append(f"{len(state.engine)} items ", style="#94a3b8")
        if state.secrets_available:
            line.append("│ SECRETS READY ", style="#22c55e")
        else:
            line.append("│ CACHED ", style="#f59e0b")
        if state.status is not None:
            line.append("│ ", style="#475569")
            line.append(state.status.text, style=LEVEL_STYLES[state.status.level])
        self.update(line)
