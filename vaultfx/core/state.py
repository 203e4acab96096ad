"""Application state for vaultfx.

AppState is the single owner of everything the UI renders. It is only
mutated on the UI thread: by the orchestrator while draining background
results, and by the action dispatcher while handling input.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Union

from vaultfx.core.errors import SessionModeError
from vaultfx.core.models import ItemType, VaultItem
from vaultfx.core.otp import OtpLifecycle
from vaultfx.search.engine import FilterEngine

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧")
DEFAULT_STATUS_TTL = 3.0


# --- Session modes ---


@dataclass(frozen=True)
class Normal:
    """Browsing: list, filter and copy input is accepted."""


@dataclass(frozen=True)
class PasswordPrompt:
    """Waiting for the master password.

    Attributes:
        buffer: Characters typed so far.
        error: Inline error from the last unlock attempt.
    """

    buffer: str = ""
    error: str | None = None


@dataclass(frozen=True)
class SaveTokenPrompt:
    """Asking whether to persist the new session credential."""


@dataclass(frozen=True)
class FatalError:
    """Blocking notice; the only way out is to quit."""

    message: str


SessionMode = Union[Normal, PasswordPrompt, SaveTokenPrompt, FatalError]


class SessionModeMachine:
    """Tracks the active modal mode and enforces its transitions.

    Transitions:
        Normal -> PasswordPrompt            vault found locked
        PasswordPrompt -> SaveTokenPrompt   unlock succeeded
        PasswordPrompt -> PasswordPrompt    unlock failed (buffer kept)
        any -> FatalError                   CLI unavailable / not logged in
        SaveTokenPrompt -> Normal           yes/no answered

    Any other transition raises SessionModeError.
    """

    def __init__(self) -> None:
        self.mode: SessionMode = Normal()

    @property
    def is_normal(self) -> bool:
        return isinstance(self.mode, Normal)

    @property
    def password(self) -> str:
        """Typed password, or "" outside the password prompt."""
        if isinstance(self.mode, PasswordPrompt):
            return self.mode.buffer
        return ""

    def _require(self, expected: type, transition: str) -> None:
        if not isinstance(self.mode, expected):
            raise SessionModeError(
                f"Cannot {transition} from {type(self.mode).__name__}"
            )

    def prompt_password(self) -> None:
        self._require(Normal, "prompt for password")
        self.mode = PasswordPrompt()

    def unlock_succeeded(self) -> None:
        self._require(PasswordPrompt, "finish unlock")
        self.mode = SaveTokenPrompt()

    def unlock_failed(self, error: str) -> None:
        self._require(PasswordPrompt, "report unlock failure")
        self.mode = PasswordPrompt(buffer=self.mode.buffer, error=error)  # type: ignore[union-attr]

    def fail(self, message: str) -> None:
        self.mode = FatalError(message)

    def answer_save_token(self) -> None:
        self._require(SaveTokenPrompt, "answer save-token prompt")
        self.mode = Normal()

    def append_char(self, char: str) -> None:
        self._require(PasswordPrompt, "edit password")
        self.mode = PasswordPrompt(buffer=self.mode.buffer + char, error=self.mode.error)  # type: ignore[union-attr]

    def delete_char(self) -> None:
        self._require(PasswordPrompt, "edit password")
        self.mode = PasswordPrompt(buffer=self.mode.buffer[:-1], error=self.mode.error)  # type: ignore[union-attr]


# --- Sync indicator ---


@dataclass
class SyncState:
    """Whether a list/sync call is running, plus its spinner frame."""

    syncing: bool = False
    frame: int = 0

    def start(self) -> None:
        self.syncing = True
        self.frame = 0

    def stop(self) -> None:
        self.syncing = False

    def advance(self) -> None:
        if self.syncing:
            self.frame = (self.frame + 1) % len(SPINNER_FRAMES)

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.frame] if self.syncing else ""


# --- Status line ---


class MessageLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class StatusMessage:
    text: str
    level: MessageLevel
    timestamp: float


# --- Layout for pointer hit-testing ---


@dataclass
class Rect:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height


# --- Owning state ---


@dataclass
class AppState:
    """Everything the UI reads.

    Attributes:
        engine: Working set, filtered view and selection.
        otp: Current one-time code and fetch guards.
        modes: Modal session mode.
        sync: List/sync indicator.
        status: Current status message, if any.
        secrets_available: Items came from the CLI (not the cache).
        details_visible: The details panel is shown.
        list_area: Screen region of the entry list (including its border).
        details_area: Screen region of the details panel content.
        details_rows: Copy target (field name) per content row of the details panel.
        list_offset: Index of the first visible list row.
        status_ttl: Seconds before a status message expires.
        clock: Monotonic clock for status expiry.
    """

    engine: FilterEngine = field(default_factory=FilterEngine)
    otp: OtpLifecycle = field(default_factory=OtpLifecycle)
    modes: SessionModeMachine = field(default_factory=SessionModeMachine)
    sync: SyncState = field(default_factory=SyncState)
    status: StatusMessage | None = None
    secrets_available: bool = False
    details_visible: bool = False
    list_area: Rect = field(default_factory=Rect)
    details_area: Rect = field(default_factory=Rect)
    details_rows: dict[int, str] = field(default_factory=dict)
    list_offset: int = 0
    status_ttl: float = DEFAULT_STATUS_TTL
    clock: Callable[[], float] = time.monotonic

    # --- Read accessors ---

    @property
    def selected_item(self) -> VaultItem | None:
        return self.engine.selected_item

    @property
    def selected_id(self) -> str | None:
        item = self.engine.selected_item
        return item.id if item else None

    @property
    def type_filter(self) -> ItemType | None:
        return self.engine.type_filter

    @property
    def current_otp(self) -> str | None:
        """OTP code for the selected item, if one is valid."""
        return self.otp.display_code(self.selected_id)

    # --- Status ---

    def set_status(self, text: str, level: MessageLevel = MessageLevel.INFO) -> None:
        self.status = StatusMessage(text, level, self.clock())

    def expire_status(self) -> None:
        """Drop the status message once it is older than status_ttl."""
        if self.status and self.clock() - self.status.timestamp >= self.status_ttl:
            self.status = None

    # --- Mutations that keep the OTP invariant ---

    def navigate(self, move: Callable[[], None]) -> None:
        """Run a selection move; a different selection clears the OTP state."""
        before = self.selected_id
        move()
        if self.selected_id != before:
            self.otp.clear()

    def refilter(self, change: Callable[[], None]) -> None:
        """Run a query or type-filter change; always clears the OTP state."""
        change()
        self.list_offset = 0
        self.otp.clear()

    def install_items(self, items: list[VaultItem], secrets: bool) -> None:
        """Replace the working set wholesale."""
        before = self.selected_id
        self.engine.load(items)
        self.secrets_available = secrets
        if self.selected_id != before:
            self.otp.clear()

    # --- Pointer hit-testing ---

    def list_index_at(self, x: int, y: int) -> int | None:
        """Map a click to a view index, or None outside the list rows.

        The first row of the list area is its border.
        """
        if not self.list_area.contains(x, y):
            return None
        row = y - self.list_area.y
        if row < 1:
            return None
        index = self.list_offset + row - 1
        if index >= len(self.engine):
            return None
        return index

    def details_field_at(self, x: int, y: int) -> str | None:
        """Map a click in the details panel to the field it copies, if any."""
        if not self.details_visible or not self.details_area.contains(x, y):
            return None
        return self.details_rows.get(y - self.details_area.y)
