"""Background coordination of Bitwarden CLI calls.

Every ``bw`` invocation runs off the UI thread. A task reports its outcome
by putting one message on the queue of its concern; tick() drains each
queue without blocking, applying at most one message per queue per tick.
Only tick() and the request methods touch AppState, and they run on the
UI thread.

Startup:
    start -> check CLI -> status -> unlocked: list
                                 -> locked: password prompt
                                 -> unauthenticated: fatal notice
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Union

from vaultfx.core.cache import VaultCache
from vaultfx.core.errors import (
    CommandFailedError,
    NotLoggedInError,
    VaultError,
    VaultLockedError,
)
from vaultfx.core.models import VaultItem
from vaultfx.core.otp import local_code
from vaultfx.core.session import SessionStore
from vaultfx.core.state import AppState, MessageLevel, PasswordPrompt
from vaultfx.core.vault_cli import BitwardenCli, VaultStatus
from vaultfx.utils.clipboard import Clipboard
from vaultfx.utils.logging import get_logger

logger = get_logger("orchestrator")

Spawner = Callable[[Callable[[], None]], None]


def thread_spawner(task: Callable[[], None]) -> None:
    """Run a task on a daemon thread."""
    threading.Thread(target=task, daemon=True).start()


def as_vault_error(error: Exception) -> VaultError:
    """Turn an exception escaping a background task into a VaultError.

    Every task must post a result, or its in-flight guard is never released.
    """
    if isinstance(error, VaultError):
        return error
    logger.error("Unexpected error in background task: %r", error)
    return CommandFailedError(f"Unexpected error: {error}")


# --- Messages (background -> UI thread) ---


@dataclass
class StatusResult:
    status: VaultStatus


@dataclass
class CliFailed:
    error: VaultError


@dataclass
class UnlockSucceeded:
    token: str


@dataclass
class UnlockFailed:
    error: VaultError


@dataclass
class SyncSucceeded:
    items: list[VaultItem]
    remote: bool


@dataclass
class SyncFailed:
    error: VaultError


@dataclass
class OtpFetched:
    item_id: str
    code: str


@dataclass
class OtpFetchFailed:
    item_id: str
    error: VaultError


CliMessage = Union[StatusResult, CliFailed]
UnlockMessage = Union[UnlockSucceeded, UnlockFailed]
SyncMessage = Union[SyncSucceeded, SyncFailed]
OtpMessage = Union[OtpFetched, OtpFetchFailed]


class SyncOrchestrator:
    """Drives CLI calls and applies their results to AppState.

    Args:
        state: The application state (UI thread only).
        cli: CLI wrapper; replaced by a session-bearing copy after unlock.
        cache: Item cache.
        sessions: Session credential store.
        clipboard: Clipboard used for copies that complete on arrival.
        spawn: Runs a background task. Defaults to a daemon thread; tests
            pass a synchronous spawner.
    """

    def __init__(
        self,
        state: AppState,
        cli: BitwardenCli,
        cache: VaultCache,
        sessions: SessionStore,
        clipboard: Clipboard,
        spawn: Spawner = thread_spawner,
    ) -> None:
        self.state = state
        self.cli = cli
        self.cache = cache
        self.sessions = sessions
        self.clipboard = clipboard
        self._spawn = spawn

        self.cli_queue: queue.SimpleQueue[CliMessage] = queue.SimpleQueue()
        self.unlock_queue: queue.SimpleQueue[UnlockMessage] = queue.SimpleQueue()
        self.sync_queue: queue.SimpleQueue[SyncMessage] = queue.SimpleQueue()
        self.otp_queue: queue.SimpleQueue[OtpMessage] = queue.SimpleQueue()

        self.unlocking = False
        self._pending_token: str | None = None

    # --- Startup ---

    def start(self) -> None:
        """Show cached items, then check the CLI version and check the vault status."""
        cached = self.cache.load()
        if cached is not None:
            self.state.install_items(cached.items, secrets=False)
            self.state.set_status(
                f"✓ Loaded {len(cached.items)} items from cache (syncing in background...)"
            )

        self.state.sync.start()
        cli = self.cli

        def task() -> None:
            try:
                cli.check_version()
                status = cli.status()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.cli_queue.put(CliFailed(as_vault_error(e)))
                return
            self.cli_queue.put(StatusResult(status))

        self._spawn(task)

    # --- Tick ---

    def tick(self) -> None:
        """Apply pending results, refresh the OTP code and advance the spinner."""
        self._drain(self.cli_queue, self._on_cli)
        self._drain(self.unlock_queue, self._on_unlock)
        self._drain(self.sync_queue, self._on_sync)
        self._drain(self.otp_queue, self._on_otp)
        self.refresh_otp()
        self.state.sync.advance()
        self.state.expire_status()

    @staticmethod
    def _drain(source: queue.SimpleQueue, handler: Callable) -> None:  # type: ignore[type-arg]
        try:
            message = source.get_nowait()
        except queue.Empty:
            return
        handler(message)

    # --- Message handlers ---

    def _on_cli(self, message: CliMessage) -> None:
        self.state.sync.stop()
        if isinstance(message, CliFailed):
            self._report(message.error, "Failed to check vault status")
            return

        logger.info("Vault status: %s", message.status.value)
        if message.status is VaultStatus.UNLOCKED:
            self._start_list(remote=False)
            return

        if message.status is VaultStatus.LOCKED:
            if self.state.modes.is_normal:
                self.state.modes.prompt_password()
        else:
            self.state.modes.fail(str(NotLoggedInError()))

    def _on_unlock(self, message: UnlockMessage) -> None:
        self.unlocking = False
        if not isinstance(self.state.modes.mode, PasswordPrompt):
            # A fatal error from another concern got there first
            logger.warning("Ignoring unlock result outside the password prompt")
            return
        if isinstance(message, UnlockSucceeded):
            self.cli = self.cli.with_session_token(message.token)
            self._pending_token = message.token
            self.state.modes.unlock_succeeded()
            return

        error = message.error
        if error.fatal:
            self.state.modes.fail(str(error))
        else:
            logger.warning("Unlock failed: %s", error)
            self.state.modes.unlock_failed(str(error))

    def _on_sync(self, message: SyncMessage) -> None:
        self.state.sync.stop()
        if isinstance(message, SyncFailed):
            self._report(message.error, "Sync failed")
            return

        self.state.install_items(message.items, secrets=True)
        if message.remote:
            self.state.set_status("✓ Vault synced successfully", MessageLevel.SUCCESS)
        else:
            self.state.set_status(f"✓ Loaded {len(message.items)} items", MessageLevel.SUCCESS)

    def _on_otp(self, message: OtpMessage) -> None:
        otp = self.state.otp
        if isinstance(message, OtpFetchFailed):
            otp.fail_fetch(message.item_id)
            self._report(message.error, "Failed to fetch TOTP")
        else:
            to_copy = otp.complete_fetch(message.item_id, message.code, self.state.selected_id)
            if to_copy is not None:
                self.copy_otp_code(to_copy)

        # A copy asked for while this fetch was running
        queued = otp.queued_copy()
        if queued is not None and queued == self.state.selected_id:
            self.request_otp(queued, copy=True, force=True)

    def _report(self, error: VaultError, context: str) -> None:
        """Route a background failure to a mode change or a status message."""
        if isinstance(error, VaultLockedError):
            if self.state.modes.is_normal:
                self.state.modes.prompt_password()
            return
        if error.fatal:
            self.state.modes.fail(str(error))
            return
        logger.error("%s: %s", context, error)
        self.state.set_status(f"✗ {context}: {error}", MessageLevel.ERROR)

    # --- Requests (UI thread) ---

    def submit_password(self) -> None:
        """Unlock with the typed password, unless an unlock is running."""
        if self.unlocking:
            self.state.set_status("⏳ Unlock already in progress...", MessageLevel.WARNING)
            return
        password = self.state.modes.password
        if not password:
            self.state.modes.unlock_failed("Password cannot be empty")
            return

        self.unlocking = True
        cli = self.cli

        def task() -> None:
            try:
                token = cli.unlock(password)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.unlock_queue.put(UnlockFailed(as_vault_error(e)))
                return
            self.unlock_queue.put(UnlockSucceeded(token))

        self._spawn(task)

    def answer_save_token(self, save: bool) -> None:
        """Persist (or not) the new credential, then load the items."""
        self.state.modes.answer_save_token()
        token, self._pending_token = self._pending_token, None
        if save and token:
            if self.sessions.save(token):
                self.state.set_status("✓ Session token saved successfully", MessageLevel.SUCCESS)
            else:
                self.state.set_status("⚠ Failed to save session token", MessageLevel.WARNING)
        else:
            self.state.set_status("Session token not saved")
        self._start_list(remote=False)

    def refresh(self) -> bool:
        """Run ``bw sync`` then list. Rejected while a sync is running."""
        return self._start_list(remote=True)

    def _start_list(self, remote: bool) -> bool:
        if self.state.sync.syncing:
            self.state.set_status("⟳ Sync already in progress...", MessageLevel.WARNING)
            return False

        self.state.sync.start()
        if remote:
            self.state.set_status("⟳ Syncing vault...")
        cli = self.cli
        cache = self.cache

        def task() -> None:
            try:
                if remote:
                    cli.sync()
                items = cli.list_items()
                cache.store(items)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.sync_queue.put(SyncFailed(as_vault_error(e)))
                return
            self.sync_queue.put(SyncSucceeded(items, remote))

        self._spawn(task)
        return True

    def request_otp(self, item_id: str, copy: bool = False, force: bool = False) -> bool:
        """Fetch the OTP code with ``bw get totp``.

        ``force`` skips the debounce, for copies that already waited.

        Returns:
            True if a fetch was started, False if the in-flight or debounce
            guard rejected it.
        """
        if not self.state.otp.begin_fetch(item_id, copy=copy, force=force):
            return False

        cli = self.cli

        def task() -> None:
            try:
                code = cli.get_totp(item_id)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.otp_queue.put(OtpFetchFailed(item_id, as_vault_error(e)))
                return
            self.otp_queue.put(OtpFetched(item_id, code))

        self._spawn(task)
        return True

    def refresh_otp(self) -> None:
        """Keep the OTP code of the item shown in the details panel current."""
        state = self.state
        item = state.selected_item
        if not state.details_visible or not state.modes.is_normal or item is None:
            return
        if not item.has_totp:
            return

        seed = item.totp_seed
        if seed is not None:
            if state.otp.state.item_id == item.id and not state.otp.is_expired():
                return
            try:
                code, _ = local_code(seed, state.otp.now())
            except VaultError as e:
                logger.debug("Local OTP unavailable, using bw: %s", e)
            else:
                state.otp.set_local(item.id, code)
                return

        if state.secrets_available and state.otp.needs_fetch(item.id):
            self.request_otp(item.id)

    def copy_otp_code(self, code: str) -> None:
        if self.clipboard.copy(code):
            self.state.set_status(f"✓ TOTP code copied: {code}", MessageLevel.SUCCESS)
        else:
            self.state.set_status("✗ Clipboard not available", MessageLevel.ERROR)
