"""Error taxonomy for vaultfx.

Every failure that crosses a component boundary is a ``VaultError``. The
``fatal`` flag marks conditions the user has to fix outside the application
(missing CLI, not logged in); everything else is recovered or reported as a
status message.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base exception for vault operations."""

    fatal: bool = False


class CliUnavailableError(VaultError):
    """Raised when the Bitwarden CLI binary is missing or not callable."""

    fatal = True

    def __init__(self, message: str = "Bitwarden CLI not found. Please install 'bw' CLI") -> None:
        super().__init__(message)


class NotLoggedInError(VaultError):
    """Raised when the CLI has no authenticated account."""

    fatal = True

    def __init__(self, message: str = "Not logged in. Please run 'bw login'") -> None:
        super().__init__(message)


class VaultLockedError(VaultError):
    """Raised when the vault is locked and a session credential is needed."""

    def __init__(self, message: str = "Vault is locked. Please unlock with 'bw unlock'") -> None:
        super().__init__(message)


class CommandFailedError(VaultError):
    """Raised when a CLI invocation fails for any other reason."""


class ParseError(VaultError):
    """Raised when CLI output or cached data cannot be decoded."""


class ClipboardUnavailableError(VaultError):
    """Raised when no clipboard mechanism exists on this system."""


class CacheIOError(VaultError):
    """Raised when the cache file cannot be read or written."""


class SessionModeError(VaultError):
    """Raised on a session mode transition the state machine does not allow."""
