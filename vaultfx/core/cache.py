"""Secret-free item cache for instant startup.

The cache holds a projection of the working set with every secret value
removed. Names of stripped secrets are kept so the UI can still tell
whether an item has a password or an OTP seed before the first sync.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vaultfx.core.errors import CacheIOError, ParseError
from vaultfx.core.models import (
    IDENTITY_KEYS,
    IDENTITY_SECRETS,
    SECRET_CARD_NUMBER,
    SECRET_CVV,
    SECRET_FIELDS,
    SECRET_NOTES,
    SECRET_PASSWORD,
    SECRET_TOTP,
    VaultItem,
)
from vaultfx.utils.logging import get_logger

# Bump when the snapshot layout changes; older files are discarded
CACHE_VERSION = 1

logger = get_logger("cache")


@dataclass
class CacheSnapshot:
    """Restored cache contents."""

    items: list[VaultItem]
    cached_at: datetime


def _project(item: VaultItem) -> dict[str, Any]:
    """Build the cache record for one item, without secret values."""
    record: dict[str, Any] = {
        "id": item.id,
        "name": item.name,
        "type": int(item.type),
        "favorite": item.favorite,
        "folderId": item.folder_id,
        "organizationId": item.organization_id,
        "revisionDate": item.revision_date,
    }
    if item.login:
        record["login"] = {
            "username": item.login.username,
            "uris": [{"uri": u.uri} for u in item.login.uris]
            if item.login.uris is not None
            else None,
        }
    if item.card:
        record["card"] = {
            "brand": item.card.brand,
            "cardholderName": item.card.cardholder_name,
            "expMonth": item.card.exp_month,
            "expYear": item.card.exp_year,
        }
    if item.identity:
        record["identity"] = {
            key: getattr(item.identity, attr)
            for key, attr in IDENTITY_KEYS.items()
            if attr not in IDENTITY_SECRETS
        }

    names = (
        SECRET_PASSWORD,
        SECRET_TOTP,
        SECRET_CARD_NUMBER,
        SECRET_CVV,
        SECRET_NOTES,
        SECRET_FIELDS,
        *IDENTITY_SECRETS,
    )
    record["redacted"] = sorted(name for name in names if item.has_secret(name))
    return record


def snapshot(items: list[VaultItem], now: datetime | None = None) -> bytes:
    """Serialize a secret-stripped snapshot of the items."""
    payload = {
        "version": CACHE_VERSION,
        "cached_at": (now or datetime.now(timezone.utc)).isoformat(),
        "items": [_project(item) for item in items],
    }
    return json.dumps(payload).encode("utf-8")


def decode(data: bytes) -> CacheSnapshot:
    """Decode snapshot bytes.

    Raises:
        ParseError: If the data is corrupt or from another cache version.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Cache is not valid JSON: {e}") from e

    if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
        raise ParseError("Cache format version mismatch")

    try:
        cached_at = datetime.fromisoformat(payload["cached_at"])
        items = [
            replace(VaultItem.from_dict(record), redacted=frozenset(record.get("redacted", [])))
            for record in payload["items"]
        ]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"Cache record is malformed: {e}") from e

    return CacheSnapshot(items=items, cached_at=cached_at)


def restore(data: bytes) -> list[VaultItem]:
    """Decode snapshot bytes into items with secrets set to None.

    Raises:
        ParseError: If the data is corrupt or from another cache version.
    """
    return decode(data).items


class VaultCache:
    """The cache file on disk.

    Attributes:
        path: Cache file location.
        enabled: When False, load() returns None and save() does nothing.
    """

    def __init__(self, path: Path, enabled: bool = True) -> None:
        self.path = path
        self.enabled = enabled

    def load(self) -> CacheSnapshot | None:
        """Read the cache.

        Returns:
            The snapshot, or None when the cache is disabled, absent or
            unreadable. A corrupt file is deleted.
        """
        if not self.enabled:
            return None
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No cache file found")
            return None
        except OSError as e:
            logger.warning("Failed to read cache file: %s", e)
            return None

        try:
            cached = decode(data)
        except ParseError as e:
            logger.warning("Cache file corrupted or incompatible: %s", e)
            try:
                self.clear()
            except CacheIOError as clear_err:
                logger.error("Failed to remove corrupted cache: %s", clear_err)
            return None

        logger.info("Loaded cache with %d items", len(cached.items))
        return cached

    def save(self, data: bytes) -> None:
        """Overwrite the cache file. Failures are logged and dropped."""
        if not self.enabled:
            return
        try:
            self._atomic_write(data)
        except CacheIOError as e:
            logger.warning("Failed to write cache: %s", e)

    def store(self, items: list[VaultItem]) -> None:
        """Snapshot the items and save them."""
        self.save(snapshot(items))

    def clear(self) -> None:
        """Remove the cache file if it exists.

        Raises:
            CacheIOError: If the file exists but cannot be removed.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheIOError(f"Failed to remove cache file: {e}") from e
        logger.info("Cache file cleared")

    def _atomic_write(self, data: bytes) -> None:
        """Write via temp file + fsync + rename with owner-only permissions."""
        cache_dir = self.path.parent
        try:
            cache_dir.mkdir(parents=True, exist_ok=True)
            if os.name != "nt":
                os.chmod(cache_dir, 0o700)
            fd, temp_path = tempfile.mkstemp(dir=cache_dir, prefix=".cache_", suffix=".tmp")
        except OSError as e:
            raise CacheIOError(str(e)) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # Set permissions before rename (temp file inherits umask)
            if os.name != "nt":
                os.chmod(temp_path, 0o600)
            os.replace(temp_path, self.path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise CacheIOError(str(e)) from e
