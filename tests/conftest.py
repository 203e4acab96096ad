# Shared fixtures for vaultfx tests.
# Items are built from CLI-shaped records so tests exercise the same parsing
# path as `bw list items`.
# nosec B105 B106 - hardcoded passwords are test fixtures, not real secrets

from __future__ import annotations

from collections.abc import Callable
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from vaultfx.core.models import VaultItem

# ---------------------------------------------------------------------------
# Item factories
# ---------------------------------------------------------------------------


def make_login(
    item_id: str,
    name: str,
    username: str | None = None,
    password: str | None = "hunter2",
    totp: str | None = None,
    uri: str | None = None,
    favorite: bool = False,
    **extra: Any,
) -> VaultItem:
    """Build a login item from a CLI-style record."""
    record: dict[str, Any] = {
        "id": item_id,
        "name": name,
        "type": 1,
        "favorite": favorite,
        "login": {
            "username": username,
            "password": password,
            "totp": totp,
            "uris": [{"uri": uri, "match": None}] if uri else None,
        },
        "revisionDate": "2024-01-01T00:00:00.000Z",
    }
    record.update(extra)
    return VaultItem.from_dict(record)


def make_note(item_id: str, name: str, notes: str = "secret note", favorite: bool = False) -> VaultItem:
    return VaultItem.from_dict(
        {"id": item_id, "name": name, "type": 2, "notes": notes, "favorite": favorite}
    )


def make_card(
    item_id: str,
    name: str,
    number: str | None = "4111111111111111",
    code: str | None = "123",
) -> VaultItem:
    return VaultItem.from_dict(
        {
            "id": item_id,
            "name": name,
            "type": 3,
            "card": {
                "brand": "Visa",
                "cardholderName": "Jane Doe",
                "number": number,
                "expMonth": "4",
                "expYear": "2030",
                "code": code,
            },
        }
    )


def make_identity(item_id: str, name: str) -> VaultItem:
    return VaultItem.from_dict(
        {
            "id": item_id,
            "name": name,
            "type": 4,
            "identity": {
                "firstName": "Jane",
                "lastName": "Doe",
                "email": "jane@example.com",
                "ssn": "123-45-6789",
                "passportNumber": "X1234567",
            },
        }
    )


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualSpawner:
    """Collects background tasks; tests decide when they run."""

    def __init__(self) -> None:
        self.tasks: list[Callable[[], None]] = []

    def __call__(self, task: Callable[[], None]) -> None:
        self.tasks.append(task)

    def run_all(self) -> None:
        while self.tasks:
            self.tasks.pop(0)()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def factory() -> SimpleNamespace:
    """Item builders: factory.login, factory.note, factory.card, factory.identity."""
    return SimpleNamespace(login=make_login, note=make_note, card=make_card, identity=make_identity)


@pytest.fixture
def scenario_items() -> list[VaultItem]:
    """GitHub, Gmail, Amazon and a secure note."""
    return [
        make_login("gh", "GitHub", username="dev@example.com", uri="https://github.com/login"),
        make_login("gm", "Gmail", username="me@gmail.com", uri="https://mail.google.com"),
        make_login("am", "Amazon", username="shopper", uri="https://www.amazon.com/ap"),
        make_note("bn", "Bank Note"),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def spawner() -> ManualSpawner:
    return ManualSpawner()


@pytest.fixture
def mock_clipboard() -> MagicMock:
    clipboard = MagicMock()
    clipboard.copy.return_value = True
    return clipboard


@pytest.fixture
def mock_cli() -> MagicMock:
    cli = MagicMock()
    cli.with_session_token.return_value = cli
    return cli
