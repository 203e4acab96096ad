"""User actions and their dispatch.

Actions are a closed set of small frozen dataclasses. ``Dispatcher.dispatch``
routes every action either to the handler of the active modal mode or, in
Normal mode, to the handler for its concern (navigation, filter, UI, copy).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from vaultfx.core.errors import ParseError
from vaultfx.core.models import ItemType, VaultItem
from vaultfx.core.orchestrator import SyncOrchestrator
from vaultfx.core.otp import local_code
from vaultfx.core.state import AppState, FatalError, MessageLevel, PasswordPrompt, SaveTokenPrompt
from vaultfx.utils.clipboard import Clipboard
from vaultfx.utils.logging import get_logger

logger = get_logger("actions")

# Type tab order; None is the "All" tab
TAB_ORDER: tuple[ItemType | None, ...] = (
    None,
    ItemType.LOGIN,
    ItemType.SECURE_NOTE,
    ItemType.CARD,
    ItemType.IDENTITY,
)

SECRETS_LOADING = "⏳ Please wait, loading vault secrets..."
CLIPBOARD_UNAVAILABLE = "✗ Clipboard not available"
OTP_RETRY_WAIT = "⏳ TOTP was just requested, try again in a moment"

# CardData attribute -> (status label, noun)
_CARD_FIELDS = {"number": ("Card number", "card number"), "code": ("CVV", "CVV")}


# --- Navigation ---


@dataclass(frozen=True)
class MoveUp:
    pass


@dataclass(frozen=True)
class MoveDown:
    pass


@dataclass(frozen=True)
class PageUp:
    pass


@dataclass(frozen=True)
class PageDown:
    pass


@dataclass(frozen=True)
class Home:
    pass


@dataclass(frozen=True)
class End:
    pass


@dataclass(frozen=True)
class SelectIndex:
    index: int


@dataclass(frozen=True)
class SelectIndexAndShowDetails:
    index: int


# --- Filter ---


@dataclass(frozen=True)
class AppendFilter:
    char: str


@dataclass(frozen=True)
class DeleteFilterChar:
    pass


@dataclass(frozen=True)
class ClearFilter:
    pass


# --- UI ---


@dataclass(frozen=True)
class ToggleDetails:
    pass


@dataclass(frozen=True)
class OpenDetails:
    pass


@dataclass(frozen=True)
class CloseDetails:
    pass


@dataclass(frozen=True)
class SelectTypeTab:
    item_type: ItemType | None


@dataclass(frozen=True)
class CycleNextTab:
    pass


@dataclass(frozen=True)
class CyclePreviousTab:
    pass


# --- Copy ---


@dataclass(frozen=True)
class CopyUsername:
    pass


@dataclass(frozen=True)
class CopyPassword:
    pass


@dataclass(frozen=True)
class CopyTotp:
    pass


@dataclass(frozen=True)
class CopyCardNumber:
    pass


@dataclass(frozen=True)
class CopyCardCvv:
    pass


# --- Vault ---


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class FetchTotp:
    pass


# --- Modal modes ---


@dataclass(frozen=True)
class AppendPasswordChar:
    char: str


@dataclass(frozen=True)
class DeletePasswordChar:
    pass


@dataclass(frozen=True)
class SubmitPassword:
    pass


@dataclass(frozen=True)
class CancelPassword:
    pass


@dataclass(frozen=True)
class SaveTokenYes:
    pass


@dataclass(frozen=True)
class SaveTokenNo:
    pass


@dataclass(frozen=True)
class Quit:
    pass


NavigationAction = Union[
    MoveUp, MoveDown, PageUp, PageDown, Home, End, SelectIndex, SelectIndexAndShowDetails
]
FilterAction = Union[AppendFilter, DeleteFilterChar, ClearFilter]
UiAction = Union[
    ToggleDetails, OpenDetails, CloseDetails, SelectTypeTab, CycleNextTab, CyclePreviousTab
]
CopyAction = Union[CopyUsername, CopyPassword, CopyTotp, CopyCardNumber, CopyCardCvv]
ModeAction = Union[
    AppendPasswordChar, DeletePasswordChar, SubmitPassword, CancelPassword, SaveTokenYes, SaveTokenNo
]
Action = Union[NavigationAction, FilterAction, UiAction, CopyAction, ModeAction, Refresh, FetchTotp, Quit]

_NAVIGATION = (MoveUp, MoveDown, PageUp, PageDown, Home, End, SelectIndex, SelectIndexAndShowDetails)
_FILTER = (AppendFilter, DeleteFilterChar, ClearFilter)
_UI = (ToggleDetails, OpenDetails, CloseDetails, SelectTypeTab, CycleNextTab, CyclePreviousTab)
_COPY = (CopyUsername, CopyPassword, CopyTotp, CopyCardNumber, CopyCardCvv)


def next_tab(current: ItemType | None, step: int = 1) -> ItemType | None:
    """Return the tab ``step`` positions after ``current``, wrapping."""
    index = TAB_ORDER.index(current)
    return TAB_ORDER[(index + step) % len(TAB_ORDER)]


class Dispatcher:
    """Applies actions to AppState.

    Args:
        state: The application state.
        orchestrator: Starts background CLI calls.
        clipboard: System clipboard.
        page_size: Rows moved by PageUp/PageDown.
    """

    def __init__(
        self,
        state: AppState,
        orchestrator: SyncOrchestrator,
        clipboard: Clipboard,
        page_size: int = 10,
    ) -> None:
        self.state = state
        self.orchestrator = orchestrator
        self.clipboard = clipboard
        self.page_size = page_size

    def dispatch(self, action: Action) -> bool:
        """Apply one action.

        Returns:
            False when the application should exit, True otherwise.
        """
        if isinstance(action, Quit):
            return False

        mode = self.state.modes.mode
        if isinstance(mode, PasswordPrompt):
            return self._password_prompt(action)
        if isinstance(mode, SaveTokenPrompt):
            self._save_token_prompt(action)
            return True
        if isinstance(mode, FatalError):
            # Quit-only
            return True

        if isinstance(action, _NAVIGATION):
            self._navigate(action)
        elif isinstance(action, _FILTER):
            self._filter(action)
        elif isinstance(action, _UI):
            self._ui(action)
        elif isinstance(action, _COPY):
            self._copy(action)
        elif isinstance(action, Refresh):
            self.orchestrator.refresh()
        elif isinstance(action, FetchTotp):
            self._fetch_totp()
        return True

    # --- Modal modes ---

    def _password_prompt(self, action: Action) -> bool:
        modes = self.state.modes
        if isinstance(action, AppendPasswordChar):
            modes.append_char(action.char)
        elif isinstance(action, DeletePasswordChar):
            modes.delete_char()
        elif isinstance(action, SubmitPassword):
            self.orchestrator.submit_password()
        elif isinstance(action, CancelPassword):
            # No partial-access mode: cancelling the prompt quits
            return False
        return True

    def _save_token_prompt(self, action: Action) -> None:
        if isinstance(action, SaveTokenYes):
            self.orchestrator.answer_save_token(True)
        elif isinstance(action, SaveTokenNo):
            self.orchestrator.answer_save_token(False)

    # --- Concerns ---

    def _navigate(self, action: NavigationAction) -> None:
        engine = self.state.engine
        if isinstance(action, MoveUp):
            self.state.navigate(engine.previous)
        elif isinstance(action, MoveDown):
            self.state.navigate(engine.next)
        elif isinstance(action, PageUp):
            self.state.navigate(lambda: engine.page_up(self.page_size))
        elif isinstance(action, PageDown):
            self.state.navigate(lambda: engine.page_down(self.page_size))
        elif isinstance(action, Home):
            self.state.navigate(engine.home)
        elif isinstance(action, End):
            self.state.navigate(engine.end)
        elif isinstance(action, SelectIndex):
            self.state.navigate(lambda: engine.select(action.index))
        elif isinstance(action, SelectIndexAndShowDetails):
            self.state.navigate(lambda: engine.select(action.index))
            if engine.selected_item is not None:
                self.state.details_visible = True

    def _filter(self, action: FilterAction) -> None:
        engine = self.state.engine
        if isinstance(action, AppendFilter):
            self.state.refilter(lambda: engine.append_query(action.char))
        elif isinstance(action, DeleteFilterChar):
            self.state.refilter(engine.delete_query_char)
        elif isinstance(action, ClearFilter):
            self.state.refilter(engine.clear_query)

    def _ui(self, action: UiAction) -> None:
        state = self.state
        if isinstance(action, ToggleDetails):
            state.details_visible = not state.details_visible
        elif isinstance(action, OpenDetails):
            state.details_visible = True
        elif isinstance(action, CloseDetails):
            state.details_visible = False
        elif isinstance(action, SelectTypeTab):
            self._set_tab(action.item_type)
        elif isinstance(action, CycleNextTab):
            self._set_tab(next_tab(state.type_filter, 1))
        elif isinstance(action, CyclePreviousTab):
            self._set_tab(next_tab(state.type_filter, -1))

    def _set_tab(self, item_type: ItemType | None) -> None:
        self.state.refilter(lambda: self.state.engine.set_type_filter(item_type))

    # --- Copy ---

    def _copy(self, action: CopyAction) -> None:
        item = self.state.selected_item
        if item is None:
            return
        if isinstance(action, CopyUsername):
            self._copy_username(item)
            return

        if not self.state.secrets_available:
            self.state.set_status(SECRETS_LOADING, MessageLevel.WARNING)
            return
        if isinstance(action, CopyPassword):
            self._copy_password(item)
        elif isinstance(action, CopyTotp):
            self._copy_totp(item)
        elif isinstance(action, CopyCardNumber):
            self._copy_card_field(item, "number")
        elif isinstance(action, CopyCardCvv):
            self._copy_card_field(item, "code")

    def _put(self, text: str, success: str, auto_clear: bool = True) -> None:
        if self.clipboard.copy(text, auto_clear=auto_clear):
            self.state.set_status(success, MessageLevel.SUCCESS)
        else:
            self.state.set_status(CLIPBOARD_UNAVAILABLE, MessageLevel.ERROR)

    def _copy_username(self, item: VaultItem) -> None:
        username = item.username
        if not username:
            self.state.set_status("✗ No username for this entry", MessageLevel.WARNING)
            return
        self._put(username, f"✓ Username copied: {username}", auto_clear=False)
        logger.info("Username copied to clipboard")

    def _copy_password(self, item: VaultItem) -> None:
        password = item.login.password if item.login else None
        if not password:
            self.state.set_status("✗ No password for this entry", MessageLevel.WARNING)
            return
        self._put(password, "✓ Password copied to clipboard (hidden for security)")
        logger.info("Password copied to clipboard")

    def _copy_card_field(self, item: VaultItem, attr: str) -> None:
        label, noun = _CARD_FIELDS[attr]
        if item.type != ItemType.CARD:
            self.state.set_status("✗ This is not a card entry", MessageLevel.WARNING)
            return
        if item.card is None:
            self.state.set_status("✗ No card data for this entry", MessageLevel.WARNING)
            return
        value = getattr(item.card, attr)
        if not value:
            self.state.set_status(f"✗ No {noun} for this entry", MessageLevel.WARNING)
            return
        self._put(value, f"✓ {label} copied to clipboard (hidden for security)")
        logger.info("%s copied to clipboard", label)

    def _copy_totp(self, item: VaultItem) -> None:
        if not item.has_totp:
            self.state.set_status("✗ No TOTP configured for this entry", MessageLevel.WARNING)
            return

        code = self.state.current_otp
        if code is None and item.totp_seed:
            try:
                code, _ = local_code(item.totp_seed, self.state.otp.now())
            except ParseError as e:
                logger.debug("Local OTP unavailable, using bw: %s", e)
            else:
                self.state.otp.set_local(item.id, code)
        if code is not None:
            self.orchestrator.copy_otp_code(code)
            return

        self.orchestrator.request_otp(item.id, copy=True)
        if self.state.otp.state.item_id == item.id and self.state.otp.state.copy_pending:
            self.state.set_status("⏳ Fetching TOTP code...")
        else:
            self._otp_rejected()

    def _fetch_totp(self) -> None:
        item = self.state.selected_item
        if item is None:
            return
        if not self.state.secrets_available:
            self.state.set_status(SECRETS_LOADING, MessageLevel.WARNING)
            return
        if not item.has_totp:
            self.state.set_status("✗ No TOTP configured for this entry", MessageLevel.WARNING)
            return
        if not self.orchestrator.request_otp(item.id):
            self._otp_rejected()

    def _otp_rejected(self) -> None:
        if self.state.otp.in_flight is not None:
            self.state.set_status("⟳ TOTP fetch already in progress...", MessageLevel.WARNING)
        else:
            self.state.set_status(OTP_RETRY_WAIT, MessageLevel.WARNING)
