"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class + Data Mapper. Account owns the domain shape; the
from_record / to_record pair maps to and from the camelCase JSON objects kept
in the "accounts" collection (the same layout the legacy Node server wrote, so
imported files round-trip unchanged).

Layer rule: no imports from api/ or live/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Credential material. Stripped from every representation that leaves the
# service: HTTP responses and event-stream broadcasts alike.
PRIVATE_FIELDS: frozenset[str] = frozenset({"passwordHash", "passwordSalt", "resetTokenHash", "resetTokenExpiry"})

_KNOWN_FIELDS = (
    "id",
    "email",
    "name",
    "role",
    "createdAt",
    "description",
    "passwordHash",
    "passwordSalt",
    "resetTokenHash",
    "resetTokenExpiry",
)


@dataclass
class Account:
    """A stored account.

    reset_token_hash / reset_token_expiry are set together by a reset request
    and cleared together when the reset completes. reset_token_expiry is epoch
    milliseconds.

    password_salt is None for accounts imported with a legacy MD5 digest that
    have not logged in since.

    extra keeps keys this version does not know about so rewriting the
    collection never drops data.
    """

    id: str
    email: str
    created_at: str
    role: str = "user"
    name: str | None = None
    description: str | None = None
    password_hash: str | None = None
    password_salt: str | None = None
    reset_token_hash: str | None = None
    reset_token_expiry: int | None = None
    extra: dict = field(default_factory=dict)

    @property
    def reset_pending(self) -> bool:
        return self.reset_token_hash is not None and self.reset_token_expiry is not None

    @classmethod
    def from_record(cls, record: dict) -> Account:
        return cls(
            id=record["id"],
            email=record["email"],
            created_at=record.get("createdAt") or "",
            role=record.get("role") or "user",
            name=record.get("name"),
            description=record.get("description"),
            password_hash=record.get("passwordHash"),
            password_salt=record.get("passwordSalt"),
            reset_token_hash=record.get("resetTokenHash"),
            reset_token_expiry=record.get("resetTokenExpiry"),
            extra={k: v for k, v in record.items() if k not in _KNOWN_FIELDS},
        )

    def to_record(self) -> dict:
        record = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "name": self.name,
                "email": self.email,
                "role": self.role,
                "createdAt": self.created_at,
                "passwordHash": self.password_hash,
                "passwordSalt": self.password_salt,
                "resetTokenHash": self.reset_token_hash,
                "resetTokenExpiry": self.reset_token_expiry,
            }
        )
        # description only exists once an update has set it
        if self.description is not None:
            record["description"] = self.description
        return record

    def public_view(self) -> dict:
        return public_view(self.to_record())


def public_view(record: dict) -> dict:
    """Return a copy of an account record with all credential fields removed."""
    return {k: v for k, v in record.items() if k not in PRIVATE_FIELDS}


def public_views(records: list[dict]) -> list[dict]:
    return [public_view(r) for r in records]


@dataclass(frozen=True)
class CredentialUpgrade:
    """Command produced when a login matched a non-primary (legacy) verifier.

    Carries the replacement strong-hash credential. Verification never
    mutates the account itself; the service applies this command inside the
    accounts single-writer block.
    """

    account_id: str
    previous_hash: str
    password_hash: str
    password_salt: str
