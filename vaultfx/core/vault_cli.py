"""Subprocess wrapper around the Bitwarden CLI (``bw``).

Each method runs one blocking ``bw`` invocation and is meant to be called
from a background worker, never from the UI thread. Failures are raised as
VaultError subclasses classified from the process's stderr.
"""

from __future__ import annotations

import json
import os
import subprocess
from enum import Enum
from typing import Any

from vaultfx.core.errors import (
    CliUnavailableError,
    CommandFailedError,
    NotLoggedInError,
    ParseError,
    VaultLockedError,
)
from vaultfx.core.models import VaultItem
from vaultfx.utils.logging import get_logger

SESSION_ENV = "BW_SESSION"
# Environment variable carrying the master password to ``bw unlock``
PASSWORD_ENV = "VAULTFX_MASTER_PASSWORD"

logger = get_logger("cli")


class VaultStatus(Enum):
    """Lock state reported by ``bw status``."""

    UNLOCKED = "unlocked"
    LOCKED = "locked"
    UNAUTHENTICATED = "unauthenticated"

    @classmethod
    def from_value(cls, value: Any) -> VaultStatus:
        """Map a status string, treating unknown values as locked."""
        try:
            return cls(value)
        except ValueError:
            return cls.LOCKED


def classify_failure(command: str, stderr: str) -> CommandFailedError | NotLoggedInError | VaultLockedError:
    """Turn a failed command's stderr into the matching error."""
    if "not logged in" in stderr.lower():
        return NotLoggedInError()
    if "locked" in stderr.lower():
        return VaultLockedError()
    return CommandFailedError(f"{command} failed: {stderr.strip()}")


class BitwardenCli:
    """Invokes ``bw`` with an optional session credential.

    Attributes:
        binary: Executable name or path.
        session_token: Value exported as BW_SESSION to every child process.
    """

    def __init__(self, binary: str = "bw", session_token: str | None = None) -> None:
        self.binary = binary
        self.session_token = session_token

    def with_session_token(self, token: str) -> BitwardenCli:
        """Return a copy of this client that uses ``token``."""
        return BitwardenCli(self.binary, token)

    def _run(
        self,
        args: list[str],
        extra_env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        env = os.environ.copy()
        if self.session_token:
            env[SESSION_ENV] = self.session_token
        if extra_env:
            env.update(extra_env)

        command = " ".join([self.binary, *args[:2]])
        logger.debug("Running %s", command)
        try:
            return subprocess.run(
                [self.binary, *args],
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                stdin=subprocess.DEVNULL,
                check=False,
            )
        except FileNotFoundError as e:
            raise CliUnavailableError() from e
        except OSError as e:
            raise CommandFailedError(f"Failed to execute {command}: {e}") from e

    def check_version(self) -> str:
        """Check that the binary runs (``bw --version``).

        Returns:
            The reported version.

        Raises:
            CliUnavailableError: If the binary is missing or exits non-zero.
        """
        try:
            result = self._run(["--version"])
        except CommandFailedError as e:
            raise CliUnavailableError() from e
        if result.returncode != 0:
            raise CliUnavailableError()
        version = result.stdout.strip()
        logger.info("Bitwarden CLI version %s", version)
        return version

    def status(self) -> VaultStatus:
        """Ask whether the vault is unlocked, locked or unauthenticated.

        Raises:
            CommandFailedError: If ``bw status`` fails.
            ParseError: If its output is not the expected JSON.
        """
        result = self._run(["status"])
        if result.returncode != 0:
            raise CommandFailedError(f"bw status failed: {result.stderr.strip()}")
        try:
            payload = json.loads(result.stdout)
            return VaultStatus.from_value(payload["status"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ParseError(f"Failed to parse status: {e}") from e

    def list_items(self) -> list[VaultItem]:
        """Fetch every item (``bw list items``), secrets included.

        Raises:
            NotLoggedInError: If no account is logged in.
            VaultLockedError: If the vault is locked.
            CommandFailedError: On any other failure.
            ParseError: If the output is not a JSON array of items.
        """
        result = self._run(["list", "items"])
        if result.returncode != 0:
            raise classify_failure("bw list items", result.stderr)
        try:
            records = json.loads(result.stdout)
            items = [VaultItem.from_dict(record) for record in records]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            raise ParseError(f"Failed to parse vault items: {e}") from e
        logger.info("Listed %d items", len(items))
        return items

    def sync(self) -> None:
        """Pull remote changes into the local vault (``bw sync``)."""
        result = self._run(["sync"])
        if result.returncode != 0:
            raise CommandFailedError(f"bw sync failed: {result.stderr.strip()}")

    def unlock(self, password: str) -> str:
        """Unlock the vault and return the session credential.

        The password is handed over through the child's environment so it
        never shows up in the process list.

        Raises:
            CommandFailedError: On a wrong password or other failure.
            NotLoggedInError: If no account is logged in.
        """
        result = self._run(
            ["unlock", "--raw", "--passwordenv", PASSWORD_ENV],
            extra_env={PASSWORD_ENV: password},
        )
        if result.returncode != 0:
            stderr = result.stderr
            if "Invalid master password" in stderr:
                raise CommandFailedError("Invalid master password")
            if "not logged in" in stderr.lower():
                raise NotLoggedInError()
            raise CommandFailedError(f"Failed to unlock vault: {stderr.strip()}")

        token = result.stdout.strip()
        if not token:
            raise CommandFailedError("Unlock succeeded but no session token was returned")
        logger.info("Vault unlocked")
        return token

    def get_totp(self, item_id: str) -> str:
        """Fetch the current OTP code for an item (``bw get totp``).

        Raises:
            NotLoggedInError: If no account is logged in.
            VaultLockedError: If the vault is locked.
            CommandFailedError: On any other failure or an empty code.
        """
        result = self._run(["get", "totp", item_id])
        if result.returncode != 0:
            raise classify_failure("bw get totp", result.stderr)
        code = result.stdout.strip()
        if not code:
            raise CommandFailedError("TOTP code is empty")
        return code
