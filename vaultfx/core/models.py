"""Data models for Bitwarden vault items."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ItemType(IntEnum):
    """Vault item type, using the CLI's numeric wire values."""

    LOGIN = 1
    SECURE_NOTE = 2
    CARD = 3
    IDENTITY = 4

    @classmethod
    def from_value(cls, value: Any) -> ItemType:
        """Convert a wire value to an ItemType, defaulting to LOGIN."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.LOGIN

    @property
    def label(self) -> str:
        """Human-readable name for tabs and details."""
        return _TYPE_LABELS[self]


_TYPE_LABELS = {
    ItemType.LOGIN: "Login",
    ItemType.SECURE_NOTE: "Secure Note",
    ItemType.CARD: "Card",
    ItemType.IDENTITY: "Identity",
}

# Secret fields that may be stripped from an item; the names are used as
# existence markers in VaultItem.redacted.
SECRET_PASSWORD = "password"
SECRET_TOTP = "totp"
SECRET_CARD_NUMBER = "card_number"
SECRET_CVV = "cvv"
SECRET_NOTES = "notes"
SECRET_FIELDS = "fields"
SECRET_SSN = "ssn"
SECRET_LICENSE = "license_number"
SECRET_PASSPORT = "passport_number"

# Identity attributes that are stripped from the cache
IDENTITY_SECRETS = (SECRET_SSN, SECRET_LICENSE, SECRET_PASSPORT)


@dataclass
class Uri:
    """A login URI and its optional match rule."""

    uri: str
    match: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Uri:
        """Create an instance from a CLI record."""
        return cls(uri=data.get("uri") or "", match=data.get("match"))


@dataclass
class LoginData:
    """Login payload.

    Attributes:
        username: Account username or email.
        password: The password, or None when absent or stripped.
        totp: OTP seed (base-32 secret or otpauth URI).
        uris: Associated URIs.
    """

    username: str | None = None
    password: str | None = None
    totp: str | None = None
    uris: list[Uri] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoginData:
        """Create an instance from a CLI record."""
        uris = data.get("uris")
        return cls(
            username=data.get("username"),
            password=data.get("password"),
            totp=data.get("totp"),
            uris=[Uri.from_dict(u) for u in uris] if uris is not None else None,
        )


@dataclass
class CardData:
    """Payment card payload."""

    brand: str | None = None
    cardholder_name: str | None = None
    number: str | None = None
    exp_month: str | None = None
    exp_year: str | None = None
    code: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CardData:
        """Create an instance from a CLI record."""
        return cls(
            brand=data.get("brand"),
            cardholder_name=data.get("cardholderName"),
            number=data.get("number"),
            exp_month=data.get("expMonth"),
            exp_year=data.get("expYear"),
            code=data.get("code"),
        )

    @property
    def masked_number(self) -> str:
        """Return masked card number showing only last 4 digits."""
        digits = "".join(filter(str.isdigit, self.number or ""))
        if len(digits) < 4:
            return "•" * len(digits)
        return f"•••• •••• •••• {digits[-4:]}"

    @property
    def expiry(self) -> str | None:
        """Expiry as MM/YYYY, or None if either part is missing."""
        if not self.exp_month or not self.exp_year:
            return None
        return f"{self.exp_month.zfill(2)}/{self.exp_year}"


# CLI camelCase key -> attribute name
IDENTITY_KEYS = {
    "title": "title",
    "firstName": "first_name",
    "middleName": "middle_name",
    "lastName": "last_name",
    "address1": "address1",
    "address2": "address2",
    "address3": "address3",
    "city": "city",
    "state": "state",
    "postalCode": "postal_code",
    "country": "country",
    "phone": "phone",
    "email": "email",
    "ssn": "ssn",
    "licenseNumber": "license_number",
    "passportNumber": "passport_number",
    "username": "username",
}


@dataclass
class IdentityData:
    """Identity payload with structured personal fields."""

    title: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    address1: str | None = None
    address2: str | None = None
    address3: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None
    ssn: str | None = None
    license_number: str | None = None
    passport_number: str | None = None
    username: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IdentityData:
        """Create an instance from a CLI record."""
        return cls(**{attr: data.get(key) for key, attr in IDENTITY_KEYS.items()})

    @property
    def full_name(self) -> str | None:
        """First, middle and last name joined, or None if all are empty."""
        parts = [p for p in (self.first_name, self.middle_name, self.last_name) if p]
        return " ".join(parts) if parts else None


@dataclass
class CustomField:
    """User-defined field attached to an item."""

    name: str | None = None
    value: str | None = None
    type: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomField:
        """Create an instance from a CLI record."""
        return cls(name=data.get("name"), value=data.get("value"), type=data.get("type"))


@dataclass
class VaultItem:
    """A single vault item as reported by ``bw list items``.

    Attributes:
        id: Stable item identifier.
        name: Display name.
        type: Item type.
        login: Login payload, for login items.
        card: Card payload, for card items.
        identity: Identity payload, for identity items.
        notes: Free-form notes.
        fields: Custom fields.
        favorite: Whether the item is starred.
        folder_id: Owning folder, if any.
        organization_id: Owning organization, if any.
        revision_date: ISO timestamp of the last revision.
        redacted: Names of secret fields that exist but were stripped
            (items restored from the cache).
    """

    id: str
    name: str
    type: ItemType = ItemType.LOGIN
    login: LoginData | None = None
    card: CardData | None = None
    identity: IdentityData | None = None
    notes: str | None = None
    fields: list[CustomField] | None = None
    favorite: bool = False
    folder_id: str | None = None
    organization_id: str | None = None
    revision_date: str = ""
    redacted: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultItem:
        """Create an instance from a ``bw list items`` record.

        Raises:
            KeyError: If ``id`` or ``name`` is missing.
        """
        login = data.get("login")
        card = data.get("card")
        identity = data.get("identity")
        fields = data.get("fields")
        return cls(
            id=data["id"],
            name=data["name"],
            type=ItemType.from_value(data.get("type", 1)),
            login=LoginData.from_dict(login) if login else None,
            card=CardData.from_dict(card) if card else None,
            identity=IdentityData.from_dict(identity) if identity else None,
            notes=data.get("notes"),
            fields=[CustomField.from_dict(f) for f in fields] if fields is not None else None,
            favorite=bool(data.get("favorite", False)),
            folder_id=data.get("folderId"),
            organization_id=data.get("organizationId"),
            revision_date=data.get("revisionDate") or "",
        )

    @property
    def username(self) -> str | None:
        """Login username, if any."""
        return self.login.username if self.login else None

    @property
    def domain(self) -> str | None:
        """Host part of the first login URI."""
        if not self.login or not self.login.uris:
            return None
        uri = self.login.uris[0].uri
        for scheme in ("https://", "http://"):
            if uri.startswith(scheme):
                uri = uri[len(scheme):]
                break
        return uri.split("/", 1)[0]

    @property
    def card_brand(self) -> str | None:
        """Card brand, if any."""
        return self.card.brand if self.card else None

    @property
    def identity_email(self) -> str | None:
        """Identity email, if any."""
        return self.identity.email if self.identity else None

    @property
    def totp_seed(self) -> str | None:
        """OTP seed when loaded; None when absent or stripped."""
        return self.login.totp if self.login else None

    @property
    def has_totp(self) -> bool:
        """Whether the item has an OTP seed, loaded or not."""
        return self.has_secret(SECRET_TOTP)

    def has_secret(self, name: str) -> bool:
        """Check whether a secret field exists, even if it was stripped."""
        if name in self.redacted:
            return True
        value: Any = None
        if name == SECRET_PASSWORD and self.login:
            value = self.login.password
        elif name == SECRET_TOTP and self.login:
            value = self.login.totp
        elif name == SECRET_CARD_NUMBER and self.card:
            value = self.card.number
        elif name == SECRET_CVV and self.card:
            value = self.card.code
        elif name == SECRET_NOTES:
            value = self.notes
        elif name == SECRET_FIELDS:
            value = self.fields
        elif name in IDENTITY_SECRETS and self.identity:
            value = getattr(self.identity, name)
        return value is not None
