"""Session credential store.

The credential returned by ``bw unlock`` is exported as ``BW_SESSION``. When
the user agrees to save it, it is also stored in the platform keyring so
later vaultfx runs start unlocked.
"""

from __future__ import annotations

import os

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from vaultfx.utils.logging import get_logger

SESSION_ENV = "BW_SESSION"
KEYRING_SERVICE = "vaultfx-bitwarden"
KEYRING_USERNAME = "session"

logger = get_logger("session")


class SessionStore:
    """Loads and persists the session credential.

    ``BW_SESSION`` in the environment wins over the keyring, so a shell that
    already unlocked the vault is used as is.
    """

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self.service = service

    def load(self) -> str | None:
        """Return the session credential, if one is available."""
        token = os.environ.get(SESSION_ENV)
        if token:
            return token
        try:
            return keyring.get_password(self.service, KEYRING_USERNAME) or None
        except KeyringError as e:
            logger.warning("Keyring unavailable, starting without a session: %s", e)
            return None

    def save(self, token: str) -> bool:
        """Persist the credential for future sessions.

        The credential is always exported into the current process first.

        Returns:
            True if it was persisted, False otherwise.
        """
        os.environ[SESSION_ENV] = token
        try:
            keyring.set_password(self.service, KEYRING_USERNAME, token)
        except KeyringError as e:
            logger.warning("Failed to persist session token: %s", e)
            return False
        logger.info("Session token saved to keyring")
        return True

    def clear(self) -> None:
        """Forget the credential, in this process and in the keyring."""
        os.environ.pop(SESSION_ENV, None)
        try:
            keyring.delete_password(self.service, KEYRING_USERNAME)
        except PasswordDeleteError:
            pass  # nothing stored
        except KeyringError as e:
            logger.warning("Failed to remove session token from keyring: %s", e)
