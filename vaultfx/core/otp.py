"""One-time password handling for vaultfx.

Codes are produced two ways: locally from a loaded seed with pyotp (RFC
6238, HMAC-SHA1, 30-second step, 6 digits), or fetched with ``bw get totp`` when
only an existence flag is known. OtpLifecycle holds the single current code
and guards remote fetches.
"""

from __future__ import annotations

import binascii
import time
from dataclasses import dataclass
from typing import Callable

import pyotp

from vaultfx.core.errors import ParseError
from vaultfx.utils.logging import get_logger

TOTP_PERIOD = 30
TOTP_DIGITS = 6
DEFAULT_DEBOUNCE = 1.0

logger = get_logger("otp")


def totp_from_seed(seed: str) -> pyotp.TOTP:
    """Build a TOTP generator from a stored seed.

    Spaces are ignored, case does not matter and padding is optional.
    ``otpauth://`` URIs are accepted.

    Raises:
        ParseError: If the seed is not a usable TOTP secret.
    """
    text = seed.strip()
    if text.lower().startswith("otpauth://"):
        try:
            otp = pyotp.parse_uri(text)
        except ValueError as e:
            raise ParseError(f"Invalid OTP URI: {e}") from e
        if not isinstance(otp, pyotp.TOTP):
            raise ParseError("OTP URI is not time-based")
    else:
        # pyotp pads the secret itself and rejects existing padding
        secret = "".join(text.split()).rstrip("=")
        if not secret:
            raise ParseError("Empty OTP secret")
        otp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD)

    try:
        otp.byte_secret()
    except (binascii.Error, ValueError) as e:
        raise ParseError("Invalid OTP secret") from e
    return otp


def next_boundary(now: float) -> float:
    """Return the start of the next 30-second window after ``now``."""
    return float((int(now) // TOTP_PERIOD + 1) * TOTP_PERIOD)


def local_code(seed: str, now: float) -> tuple[str, int]:
    """Compute the current code for a seed.

    Args:
        seed: Base-32 secret or otpauth URI.
        now: Unix timestamp.

    Returns:
        Tuple of (6-digit code, seconds the code stays valid).

    Raises:
        ParseError: If the seed cannot be decoded.
    """
    otp = totp_from_seed(seed)
    code = otp.at(int(now))
    remaining = otp.interval - int(now) % otp.interval
    return code, remaining


@dataclass
class OtpState:
    """The single code the UI may show.

    Attributes:
        code: Current code, if any.
        expires_at: Unix time the code stops being valid.
        item_id: Item the code (or pending fetch) belongs to.
        loading: A remote fetch for ``item_id`` is outstanding.
        copy_pending: Copy the code as soon as it arrives.
        last_fetch: Unix time of the last remote fetch attempt.
    """

    code: str | None = None
    expires_at: float = 0.0
    item_id: str | None = None
    loading: bool = False
    copy_pending: bool = False
    last_fetch: float | None = None


class OtpLifecycle:
    """Owns OtpState and enforces the remote fetch guards.

    At most one remote fetch is in flight. A fetch keeps counting as in
    flight after clear(), until its result is completed or failed, so
    moving the selection cannot start a second one.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self._clock = clock
        self._debounce = debounce
        self.state = OtpState()
        self.in_flight: str | None = None

    def clear(self) -> None:
        """Forget the current code; the debounce timestamp is kept."""
        self.state = OtpState(last_fetch=self.state.last_fetch)

    def now(self) -> float:
        return self._clock()

    def begin_fetch(self, item_id: str, copy: bool = False, force: bool = False) -> bool:
        """Start a remote fetch for an item.

        A copy requested while another item's fetch is running is recorded
        and reported by queued_copy() once that fetch ends.

        Args:
            item_id: Item to fetch the code for.
            copy: Copy the code to the clipboard when it arrives.
            force: Skip the debounce check.

        Returns:
            True if the caller should spawn the fetch, False if it was
            rejected (fetch in flight, or within the debounce window).
        """
        now = self._clock()
        pending = copy or (self.state.item_id == item_id and self.state.copy_pending)
        if self.in_flight is not None:
            if self.in_flight == item_id:
                # Reattach to the running fetch, e.g. after moving away and back
                self.state = OtpState(
                    item_id=item_id, loading=True, copy_pending=pending, last_fetch=self.state.last_fetch
                )
            elif copy:
                # Started by queued_copy() once the running fetch ends
                self.state = OtpState(item_id=item_id, copy_pending=True, last_fetch=self.state.last_fetch)
            return False
        if not force and self.is_debounced():
            return False

        self.in_flight = item_id
        self.state = OtpState(item_id=item_id, loading=True, copy_pending=pending, last_fetch=now)
        return True

    def is_debounced(self) -> bool:
        """Whether the previous fetch attempt was too recent to try again."""
        last = self.state.last_fetch
        return last is not None and self._clock() - last < self._debounce

    def queued_copy(self) -> str | None:
        """Item whose copy request is waiting for a fetch to be started."""
        state = self.state
        if self.in_flight is None and state.copy_pending and not state.loading:
            return state.item_id
        return None

    def complete_fetch(self, item_id: str, code: str, selected_id: str | None) -> str | None:
        """Install a fetched code.

        The code is discarded if the state was cleared or the selection
        moved to another item while the fetch was running.

        Returns:
            The code when a copy was pending for it, otherwise None.
        """
        self.in_flight = None
        if item_id != self.state.item_id or item_id != selected_id:
            logger.debug("Discarding OTP for an item that is no longer selected")
            return None

        copy = self.state.copy_pending
        self.state = OtpState(
            code=code,
            expires_at=next_boundary(self._clock()),
            item_id=item_id,
            last_fetch=self.state.last_fetch,
        )
        return code if copy else None

    def fail_fetch(self, item_id: str) -> None:
        """Record a failed fetch; the item can be retried after the debounce."""
        self.in_flight = None
        if self.state.item_id == item_id:
            self.state.loading = False
            self.state.copy_pending = False

    def set_local(self, item_id: str, code: str) -> None:
        """Install a locally computed code."""
        self.state = OtpState(
            code=code,
            expires_at=next_boundary(self._clock()),
            item_id=item_id,
            last_fetch=self.state.last_fetch,
        )

    def is_expired(self) -> bool:
        return self.state.code is None or self._clock() >= self.state.expires_at

    def remaining(self) -> int:
        """Whole seconds until the current code expires (0 when none)."""
        if self.state.code is None:
            return 0
        return max(0, int(self.state.expires_at - self._clock()))

    def needs_fetch(self, item_id: str) -> bool:
        """Whether a remote fetch is due for the selected item."""
        if self.state.item_id == item_id and self.state.loading:
            return False
        return self.state.item_id != item_id or self.is_expired()

    def display_code(self, selected_id: str | None) -> str | None:
        """Return the code if it belongs to the selection and is still valid."""
        if selected_id is None or self.state.item_id != selected_id:
            return None
        if self.is_expired():
            return None
        return self.state.code
