# Orchestrator tests for vaultfx.
# Validates startup paths, unlock and save-token flows, the sync guard and
# OTP fetch handling. Background tasks run through a manual spawner so each
# test decides exactly when CLI calls happen and when results are applied.
# nosec B101 - assert usage is intentional in test code
# nosec B106 - hardcoded passwords are test fixtures, not real secrets

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from vaultfx.core.cache import CacheSnapshot
from vaultfx.core.errors import (
    CliUnavailableError,
    CommandFailedError,
    NotLoggedInError,
    VaultLockedError,
)
from vaultfx.core.models import VaultItem
from vaultfx.core.orchestrator import SyncOrchestrator, SyncSucceeded
from vaultfx.core.otp import OtpLifecycle, local_code
from vaultfx.core.state import AppState, FatalError, MessageLevel, Normal, PasswordPrompt, SaveTokenPrompt
from vaultfx.core.vault_cli import VaultStatus

RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def cache() -> MagicMock:
    cache = MagicMock()
    cache.load.return_value = None
    return cache


@pytest.fixture
def sessions() -> MagicMock:
    sessions = MagicMock()
    sessions.save.return_value = True
    return sessions


@pytest.fixture
def orchestrator(mock_cli, cache, sessions, mock_clipboard, spawner, clock) -> SyncOrchestrator:
    state = AppState(otp=OtpLifecycle(clock=clock), clock=clock)
    return SyncOrchestrator(state, mock_cli, cache, sessions, mock_clipboard, spawn=spawner)


def settle(orchestrator: SyncOrchestrator, spawner, rounds: int = 4) -> None:
    """Run pending tasks and apply their results, a few times over."""
    for _ in range(rounds):
        spawner.run_all()
        orchestrator.tick()


def status_text(orchestrator: SyncOrchestrator) -> str | None:
    status = orchestrator.state.status
    return status.text if status else None


def enter_password_prompt(orchestrator: SyncOrchestrator, password: str = "pw") -> None:
    orchestrator.state.modes.prompt_password()
    for char in password:
        orchestrator.state.modes.append_char(char)


# =============================================================================
# SECTION 1: STARTUP
# =============================================================================


@pytest.mark.unit
class TestStartup:
    """Cache first, then the version check and status decide the next step."""

    def test_cached_items_shown_immediately(
        self, orchestrator: SyncOrchestrator, cache: MagicMock, scenario_items: list[VaultItem]
    ) -> None:
        cache.load.return_value = CacheSnapshot(scenario_items, datetime.now(timezone.utc))
        orchestrator.start()

        state = orchestrator.state
        assert len(state.engine) == 4
        assert state.secrets_available is False
        assert state.sync.syncing is True
        assert status_text(orchestrator) == "✓ Loaded 4 items from cache (syncing in background...)"

    def test_no_cache_no_status(self, orchestrator: SyncOrchestrator) -> None:
        orchestrator.start()
        assert orchestrator.state.status is None
        assert len(orchestrator.state.engine) == 0

    def test_unlocked_vault_lists_items(
        self,
        orchestrator: SyncOrchestrator,
        mock_cli: MagicMock,
        cache: MagicMock,
        spawner,
        scenario_items: list[VaultItem],
    ) -> None:
        mock_cli.status.return_value = VaultStatus.UNLOCKED
        mock_cli.list_items.return_value = scenario_items

        orchestrator.start()
        settle(orchestrator, spawner)

        state = orchestrator.state
        mock_cli.check_version.assert_called_once()
        mock_cli.sync.assert_not_called()
        cache.store.assert_called_once_with(scenario_items)
        assert len(state.engine) == 4
        assert state.secrets_available is True
        assert state.sync.syncing is False
        assert status_text(orchestrator) == "✓ Loaded 4 items"

    def test_locked_vault_prompts_for_password(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        mock_cli.status.return_value = VaultStatus.LOCKED
        orchestrator.start()
        settle(orchestrator, spawner)

        assert orchestrator.state.modes.mode == PasswordPrompt()
        assert orchestrator.state.sync.syncing is False
        mock_cli.list_items.assert_not_called()

    def test_unauthenticated_is_fatal(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.status.return_value = VaultStatus.UNAUTHENTICATED
        orchestrator.start()
        settle(orchestrator, spawner)

        assert orchestrator.state.modes.mode == FatalError(str(NotLoggedInError()))

    def test_missing_cli_is_fatal(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.check_version.side_effect = CliUnavailableError()
        orchestrator.start()
        settle(orchestrator, spawner)

        assert orchestrator.state.modes.mode == FatalError("Bitwarden CLI not found. Please install 'bw' CLI")
        mock_cli.status.assert_not_called()

    def test_status_failure_is_reported(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.status.side_effect = CommandFailedError("boom")
        orchestrator.start()
        settle(orchestrator, spawner)

        assert isinstance(orchestrator.state.modes.mode, Normal)
        assert status_text(orchestrator) == "✗ Failed to check vault status: boom"
        assert orchestrator.state.status.level is MessageLevel.ERROR

    def test_results_wait_for_tick(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.status.return_value = VaultStatus.LOCKED
        orchestrator.start()
        spawner.run_all()
        assert isinstance(orchestrator.state.modes.mode, Normal)
        orchestrator.tick()
        assert isinstance(orchestrator.state.modes.mode, PasswordPrompt)


# =============================================================================
# SECTION 2: UNLOCK AND SAVE TOKEN
# =============================================================================


@pytest.mark.unit
class TestUnlock:
    """Password submission, its outcomes and the save-token answer."""

    def test_successful_unlock_asks_to_save_token(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        session_cli = MagicMock()
        mock_cli.with_session_token.return_value = session_cli
        mock_cli.unlock.return_value = "tok"
        enter_password_prompt(orchestrator, "pw")

        orchestrator.submit_password()
        assert orchestrator.unlocking is True
        settle(orchestrator, spawner, rounds=1)

        mock_cli.unlock.assert_called_once_with("pw")
        mock_cli.with_session_token.assert_called_once_with("tok")
        assert orchestrator.cli is session_cli
        assert orchestrator.unlocking is False
        assert isinstance(orchestrator.state.modes.mode, SaveTokenPrompt)

    def test_second_submit_rejected_while_unlocking(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        orchestrator.submit_password()

        assert len(spawner.tasks) == 1
        assert status_text(orchestrator) == "⏳ Unlock already in progress..."

    def test_wrong_password_keeps_prompt(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.unlock.side_effect = CommandFailedError("Invalid master password")
        enter_password_prompt(orchestrator, "pw")
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        assert orchestrator.state.modes.mode == PasswordPrompt(buffer="pw", error="Invalid master password")
        assert orchestrator.unlocking is False

    def test_not_logged_in_during_unlock_is_fatal(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        mock_cli.unlock.side_effect = NotLoggedInError()
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        assert isinstance(orchestrator.state.modes.mode, FatalError)

    def test_empty_password_not_submitted(self, orchestrator: SyncOrchestrator, spawner) -> None:
        enter_password_prompt(orchestrator, "")
        orchestrator.submit_password()

        assert spawner.tasks == []
        assert orchestrator.state.modes.mode == PasswordPrompt(error="Password cannot be empty")

    def test_unlock_result_after_fatal_error_ignored(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        mock_cli.unlock.return_value = "tok"
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        orchestrator.state.modes.fail(str(NotLoggedInError()))
        settle(orchestrator, spawner, rounds=1)

        assert orchestrator.state.modes.mode == FatalError(str(NotLoggedInError()))
        assert orchestrator.unlocking is False
        mock_cli.with_session_token.assert_not_called()

    def test_save_yes_persists_and_lists(
        self,
        orchestrator: SyncOrchestrator,
        mock_cli: MagicMock,
        sessions: MagicMock,
        spawner,
        scenario_items: list[VaultItem],
    ) -> None:
        session_cli = MagicMock()
        session_cli.list_items.return_value = scenario_items
        mock_cli.with_session_token.return_value = session_cli
        mock_cli.unlock.return_value = "tok"
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        orchestrator.answer_save_token(True)
        sessions.save.assert_called_once_with("tok")
        assert status_text(orchestrator) == "✓ Session token saved successfully"
        assert isinstance(orchestrator.state.modes.mode, Normal)
        assert orchestrator.state.sync.syncing is True

        settle(orchestrator, spawner)
        session_cli.list_items.assert_called_once()
        mock_cli.list_items.assert_not_called()
        assert len(orchestrator.state.engine) == 4

    def test_save_failure_is_a_warning(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, sessions: MagicMock, spawner
    ) -> None:
        sessions.save.return_value = False
        mock_cli.unlock.return_value = "tok"
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        orchestrator.answer_save_token(True)
        assert status_text(orchestrator) == "⚠ Failed to save session token"
        assert orchestrator.state.status.level is MessageLevel.WARNING

    def test_save_no_skips_persisting(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, sessions: MagicMock, spawner
    ) -> None:
        mock_cli.unlock.return_value = "tok"
        enter_password_prompt(orchestrator)
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        orchestrator.answer_save_token(False)
        sessions.save.assert_not_called()
        assert status_text(orchestrator) == "Session token not saved"


# =============================================================================
# SECTION 3: REFRESH
# =============================================================================


@pytest.mark.unit
class TestRefresh:
    """Only one list/sync task may run at a time."""

    def test_refresh_syncs_then_lists(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner, scenario_items: list[VaultItem]
    ) -> None:
        mock_cli.list_items.return_value = scenario_items
        assert orchestrator.refresh() is True
        assert status_text(orchestrator) == "⟳ Syncing vault..."

        settle(orchestrator, spawner)
        mock_cli.sync.assert_called_once()
        assert status_text(orchestrator) == "✓ Vault synced successfully"
        assert orchestrator.state.secrets_available is True

    def test_second_refresh_rejected_while_syncing(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner, scenario_items: list[VaultItem]
    ) -> None:
        mock_cli.list_items.return_value = scenario_items
        orchestrator.refresh()
        assert orchestrator.refresh() is False

        assert len(spawner.tasks) == 1
        assert status_text(orchestrator) == "⟳ Sync already in progress..."
        settle(orchestrator, spawner)
        mock_cli.sync.assert_called_once()
        mock_cli.list_items.assert_called_once()

    def test_sync_failure_reported(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.sync.side_effect = CommandFailedError("network down")
        orchestrator.refresh()
        settle(orchestrator, spawner)

        assert status_text(orchestrator) == "✗ Sync failed: network down"
        assert orchestrator.state.sync.syncing is False
        mock_cli.list_items.assert_not_called()

    def test_locked_during_list_prompts(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.list_items.side_effect = VaultLockedError()
        orchestrator.refresh()
        settle(orchestrator, spawner)

        assert isinstance(orchestrator.state.modes.mode, PasswordPrompt)

    def test_one_message_per_queue_per_tick(
        self, orchestrator: SyncOrchestrator, scenario_items: list[VaultItem]
    ) -> None:
        orchestrator.sync_queue.put(SyncSucceeded(scenario_items[:1], False))
        orchestrator.sync_queue.put(SyncSucceeded(scenario_items, False))

        orchestrator.tick()
        assert len(orchestrator.state.engine) == 1
        orchestrator.tick()
        assert len(orchestrator.state.engine) == 4


# =============================================================================
# SECTION 4: OTP FETCHING
# =============================================================================


@pytest.mark.unit
class TestOtpFetching:
    """Remote fetches only ever land on the item that requested them."""

    @pytest.fixture
    def loaded(self, orchestrator: SyncOrchestrator, scenario_items: list[VaultItem]) -> SyncOrchestrator:
        orchestrator.state.install_items(scenario_items, secrets=True)
        return orchestrator

    def test_result_discarded_after_selection_moves(
        self, loaded: SyncOrchestrator, mock_cli: MagicMock, mock_clipboard: MagicMock, spawner
    ) -> None:
        mock_cli.get_totp.return_value = "123456"
        state = loaded.state
        item_a = state.selected_id
        assert loaded.request_otp(item_a, copy=True) is True

        state.navigate(state.engine.next)
        assert state.selected_id != item_a
        settle(loaded, spawner, rounds=1)

        assert state.current_otp is None
        assert state.otp.state.code is None
        assert state.otp.in_flight is None
        mock_clipboard.copy.assert_not_called()

    def test_copy_on_arrival(
        self, loaded: SyncOrchestrator, mock_cli: MagicMock, mock_clipboard: MagicMock, spawner
    ) -> None:
        mock_cli.get_totp.return_value = "123456"
        loaded.request_otp(loaded.state.selected_id, copy=True)
        settle(loaded, spawner, rounds=1)

        mock_clipboard.copy.assert_called_once_with("123456")
        assert loaded.state.current_otp == "123456"
        assert status_text(loaded) == "✓ TOTP code copied: 123456"

    def test_copy_without_clipboard(
        self, loaded: SyncOrchestrator, mock_cli: MagicMock, mock_clipboard: MagicMock, spawner
    ) -> None:
        mock_cli.get_totp.return_value = "123456"
        mock_clipboard.copy.return_value = False
        loaded.request_otp(loaded.state.selected_id, copy=True)
        settle(loaded, spawner, rounds=1)

        assert status_text(loaded) == "✗ Clipboard not available"

    def test_fetch_failure_reported(self, loaded: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.get_totp.side_effect = CommandFailedError("no totp")
        loaded.request_otp(loaded.state.selected_id)
        settle(loaded, spawner, rounds=1)

        assert status_text(loaded) == "✗ Failed to fetch TOTP: no totp"
        assert loaded.state.otp.in_flight is None
        assert loaded.state.otp.state.loading is False

    def test_second_request_rejected(self, loaded: SyncOrchestrator, spawner) -> None:
        item = loaded.state.selected_id
        assert loaded.request_otp(item) is True
        assert loaded.request_otp(item) is False
        assert len(spawner.tasks) == 1

    def test_copy_requested_during_other_fetch(
        self, loaded: SyncOrchestrator, mock_cli: MagicMock, mock_clipboard: MagicMock, spawner
    ) -> None:
        state = loaded.state
        item_a = state.selected_id
        loaded.request_otp(item_a)
        state.navigate(state.engine.next)
        item_b = state.selected_id
        mock_cli.get_totp.side_effect = lambda item_id: "111111" if item_id == item_a else "654321"

        assert loaded.request_otp(item_b, copy=True) is False
        settle(loaded, spawner, rounds=2)

        mock_cli.get_totp.assert_any_call(item_b)
        mock_clipboard.copy.assert_called_once_with("654321")
        assert state.current_otp == "654321"

    def test_queued_copy_dropped_when_selection_moves_on(
        self, loaded: SyncOrchestrator, mock_cli: MagicMock, mock_clipboard: MagicMock, spawner
    ) -> None:
        state = loaded.state
        loaded.request_otp(state.selected_id)
        state.navigate(state.engine.next)
        loaded.request_otp(state.selected_id, copy=True)
        state.navigate(state.engine.next)
        settle(loaded, spawner, rounds=2)

        assert mock_cli.get_totp.call_count == 1
        mock_clipboard.copy.assert_not_called()


@pytest.mark.unit
class TestOtpRefresh:
    """The details panel keeps the selected item's code current."""

    def test_local_seed_computes_code(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, factory: SimpleNamespace, clock
    ) -> None:
        state = orchestrator.state
        state.install_items([factory.login("a", "Alpha", totp=RFC_SECRET)], secrets=True)
        state.details_visible = True

        orchestrator.tick()
        assert state.current_otp == local_code(RFC_SECRET, clock.now)[0]
        mock_cli.get_totp.assert_not_called()

    def test_local_code_recomputed_after_window(
        self, orchestrator: SyncOrchestrator, factory: SimpleNamespace, clock
    ) -> None:
        state = orchestrator.state
        state.install_items([factory.login("a", "Alpha", totp=RFC_SECRET)], secrets=True)
        state.details_visible = True
        orchestrator.tick()

        clock.advance(30)
        orchestrator.tick()
        assert state.current_otp == local_code(RFC_SECRET, clock.now)[0]

    def test_invalid_seed_falls_back_to_cli(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, factory: SimpleNamespace, spawner
    ) -> None:
        mock_cli.get_totp.return_value = "654321"
        state = orchestrator.state
        state.install_items([factory.login("a", "Alpha", totp="steam://ABC!")], secrets=True)
        state.details_visible = True

        settle(orchestrator, spawner, rounds=2)
        mock_cli.get_totp.assert_called_once_with("a")
        assert state.current_otp == "654321"

    def test_cached_items_wait_for_secrets(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner
    ) -> None:
        # Restored from the cache: the seed exists but is not loaded
        state = orchestrator.state
        state.install_items([VaultItem(id="a", name="Alpha", redacted=frozenset({"totp"}))], secrets=False)
        state.details_visible = True

        settle(orchestrator, spawner, rounds=2)
        mock_cli.get_totp.assert_not_called()

    def test_hidden_details_do_nothing(
        self, orchestrator: SyncOrchestrator, factory: SimpleNamespace
    ) -> None:
        state = orchestrator.state
        state.install_items([factory.login("a", "Alpha", totp=RFC_SECRET)], secrets=True)
        orchestrator.tick()
        assert state.otp.state.code is None


# =============================================================================
# SECTION 5: UNEXPECTED TASK ERRORS
# =============================================================================

UNDECODABLE = UnicodeDecodeError("utf-8", b"Caf\xe9", 3, 4, "invalid continuation byte")


@pytest.mark.unit
class TestUnexpectedTaskErrors:
    """A task that raises something other than VaultError still releases its guard."""

    def test_status_check(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.check_version.side_effect = RuntimeError("boom")
        orchestrator.start()
        settle(orchestrator, spawner)

        assert orchestrator.state.sync.syncing is False
        assert status_text(orchestrator) == "✗ Failed to check vault status: Unexpected error: boom"

    def test_refresh_can_run_again(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner, scenario_items: list[VaultItem]
    ) -> None:
        mock_cli.list_items.side_effect = UNDECODABLE
        orchestrator.refresh()
        settle(orchestrator, spawner)

        assert orchestrator.state.sync.syncing is False
        assert status_text(orchestrator).startswith("✗ Sync failed: Unexpected error:")

        mock_cli.list_items.side_effect = None
        mock_cli.list_items.return_value = scenario_items
        assert orchestrator.refresh() is True
        settle(orchestrator, spawner)
        assert len(orchestrator.state.engine) == 4

    def test_cache_write_error(
        self,
        orchestrator: SyncOrchestrator,
        mock_cli: MagicMock,
        cache: MagicMock,
        spawner,
        scenario_items: list[VaultItem],
    ) -> None:
        mock_cli.list_items.return_value = scenario_items
        cache.store.side_effect = TypeError("not serializable")
        orchestrator.refresh()
        settle(orchestrator, spawner)

        assert orchestrator.state.sync.syncing is False
        assert orchestrator.state.status.level is MessageLevel.ERROR

    def test_unlock(self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner) -> None:
        mock_cli.unlock.side_effect = RuntimeError("boom")
        enter_password_prompt(orchestrator, "pw")
        orchestrator.submit_password()
        settle(orchestrator, spawner, rounds=1)

        assert orchestrator.unlocking is False
        assert orchestrator.state.modes.mode == PasswordPrompt(buffer="pw", error="Unexpected error: boom")

    def test_otp_fetch(
        self, orchestrator: SyncOrchestrator, mock_cli: MagicMock, spawner, scenario_items: list[VaultItem]
    ) -> None:
        orchestrator.state.install_items(scenario_items, secrets=True)
        mock_cli.get_totp.side_effect = UNDECODABLE
        orchestrator.request_otp(orchestrator.state.selected_id)
        settle(orchestrator, spawner, rounds=1)

        assert orchestrator.state.otp.in_flight is None
        assert orchestrator.state.otp.state.loading is False
