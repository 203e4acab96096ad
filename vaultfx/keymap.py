"""Key and pointer bindings.

Maps Textual key names to actions for the active session mode. The mode
decides what a key means: in the password prompt every printable key is
part of the password, in Normal mode it extends the filter query.
"""

from __future__ import annotations

from vaultfx.core import actions as a
from vaultfx.core.models import ItemType
from vaultfx.core.state import AppState, FatalError, PasswordPrompt, SaveTokenPrompt

NORMAL_KEYS: dict[str, a.Action] = {
    "ctrl+c": a.Quit(),
    "up": a.MoveUp(),
    "down": a.MoveDown(),
    "ctrl+k": a.MoveUp(),
    "ctrl+j": a.MoveDown(),
    "pageup": a.PageUp(),
    "pagedown": a.PageDown(),
    "home": a.Home(),
    "end": a.End(),
    "backspace": a.DeleteFilterChar(),
    "enter": a.OpenDetails(),
    "ctrl+u": a.CopyUsername(),
    "ctrl+p": a.CopyPassword(),
    "ctrl+t": a.CopyTotp(),
    "ctrl+n": a.CopyCardNumber(),
    "ctrl+e": a.CopyCardCvv(),
    "ctrl+o": a.FetchTotp(),
    "ctrl+r": a.Refresh(),
    "ctrl+d": a.ToggleDetails(),
    "tab": a.CycleNextTab(),
    "shift+tab": a.CyclePreviousTab(),
    "f1": a.SelectTypeTab(None),
    "f2": a.SelectTypeTab(ItemType.LOGIN),
    "f3": a.SelectTypeTab(ItemType.SECURE_NOTE),
    "f4": a.SelectTypeTab(ItemType.CARD),
    "f5": a.SelectTypeTab(ItemType.IDENTITY),
}

PASSWORD_KEYS: dict[str, a.Action] = {
    "ctrl+c": a.Quit(),
    "enter": a.SubmitPassword(),
    "backspace": a.DeletePasswordChar(),
    "escape": a.CancelPassword(),
}

SAVE_TOKEN_KEYS: dict[str, a.Action] = {
    "ctrl+c": a.Quit(),
    "y": a.SaveTokenYes(),
    "Y": a.SaveTokenYes(),
    "enter": a.SaveTokenYes(),
    "n": a.SaveTokenNo(),
    "N": a.SaveTokenNo(),
    "escape": a.SaveTokenNo(),
}

FATAL_KEYS: dict[str, a.Action] = {
    "ctrl+c": a.Quit(),
    "q": a.Quit(),
    "escape": a.Quit(),
    "enter": a.Quit(),
}


# Details panel field -> copy action for clicks on that field
DETAIL_COPY_ACTIONS: dict[str, a.Action] = {
    "username": a.CopyUsername(),
    "password": a.CopyPassword(),
    "totp": a.CopyTotp(),
    "card_number": a.CopyCardNumber(),
    "cvv": a.CopyCardCvv(),
}


def _printable(key: str, character: str | None) -> str | None:
    if character is None or len(character) != 1 or not character.isprintable():
        return None
    if key.startswith("ctrl+"):
        return None
    return character


def action_for_key(state: AppState, key: str, character: str | None = None) -> a.Action | None:
    """Translate a key press into an action, or None if it is unbound."""
    mode = state.modes.mode

    if isinstance(mode, PasswordPrompt):
        if key in PASSWORD_KEYS:
            return PASSWORD_KEYS[key]
        char = _printable(key, character)
        return a.AppendPasswordChar(char) if char else None
    if isinstance(mode, SaveTokenPrompt):
        return SAVE_TOKEN_KEYS.get(key)
    if isinstance(mode, FatalError):
        return FATAL_KEYS.get(key)

    if key == "escape":
        # Clear the query first, then close the details panel
        if state.engine.query:
            return a.ClearFilter()
        return a.CloseDetails() if state.details_visible else None
    if key in NORMAL_KEYS:
        return NORMAL_KEYS[key]
    char = _printable(key, character)
    return a.AppendFilter(char) if char else None


def action_for_click(state: AppState, x: int, y: int) -> a.Action | None:
    """Translate a left click at screen coordinates into an action."""
    copy_field = state.details_field_at(x, y)
    if copy_field is not None:
        return DETAIL_COPY_ACTIONS.get(copy_field)
    index = state.list_index_at(x, y)
    if index is None:
        return None
    return a.SelectIndexAndShowDetails(index)


def action_for_scroll(up: bool) -> a.Action:
    return a.MoveUp() if up else a.MoveDown()
