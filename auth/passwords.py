"""
auth/passwords.py -- Password hashing and the credential verifier chain.

Security design decisions:
  Strong hash: scrypt via hashlib. Parameters come from Settings and default
       to N=16384, r=8, p=1 with a 64-byte key -- the values the legacy Node
       server used -- so its stored hashes keep verifying. The salt is 16
       random bytes, stored hex-encoded, and fed to scrypt as that hex text.

  Legacy digest: unsalted MD5 hex of the password. Accounts created under the
       old scheme still log in; a successful legacy match yields a
       CredentialUpgrade the service persists with the login, after which the
       strong verifier matches and the legacy path is never taken again.

  Comparison: hmac.compare_digest for every hash equality check, so timing
       does not leak how many leading characters matched.

  Unknown accounts: verify_login() still runs scrypt against _DUMMY_SALT so
       response time does not reveal whether an email is registered.

Layer rule: no imports from api/ or live/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass

from auth.models import Account, CredentialUpgrade
from core.config import get_settings

_settings = get_settings()

# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def generate_salt() -> str:
    return secrets.token_hex(16)


def hash_password(password: str, salt: str) -> str:
    """Return the hex-encoded scrypt digest of password under salt."""
    key_length = _settings.scrypt_key_length
    # scrypt needs 128 * N * r bytes; leave headroom over OpenSSL's 32 MiB default.
    maxmem = 128 * _settings.scrypt_n * _settings.scrypt_r * 2 + 1024 * 1024
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=_settings.scrypt_n,
        r=_settings.scrypt_r,
        p=_settings.scrypt_p,
        maxmem=maxmem,
        dklen=key_length,
    ).hex()


def legacy_digest(password: str) -> str:
    """Unsalted MD5 hex digest -- verification of pre-scrypt accounts only."""
    return hashlib.md5(password.encode("utf-8")).hexdigest()  # noqa: S324 # nosec B324


def verify_password(password: str, stored_hash: str | None, stored_salt: str | None) -> bool:
    """Return True if password hashes to stored_hash under stored_salt."""
    if not stored_hash or not stored_salt:
        return False
    return hmac.compare_digest(hash_password(password, stored_salt), stored_hash)


# Timing equalization for unknown emails. Computed once at import.
_DUMMY_SALT: str = generate_salt()
_DUMMY_HASH: str = hash_password("accounthub_timing_dummy", _DUMMY_SALT)


# ---------------------------------------------------------------------------
# Verifier chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Verification:
    """Outcome of running the verifier chain for one login attempt."""

    ok: bool
    verifier: str | None = None
    upgrade: CredentialUpgrade | None = None


class StrongHashVerifier:
    """Primary scheme: salted scrypt."""

    name = "scrypt"
    primary = True

    def matches(self, account: Account, password: str) -> bool:
        return verify_password(password, account.password_hash, account.password_salt)


class LegacyDigestVerifier:
    """Fallback scheme: unsalted MD5 of the password."""

    name = "md5"
    primary = False

    def matches(self, account: Account, password: str) -> bool:
        if not account.password_hash:
            return False
        return hmac.compare_digest(legacy_digest(password), account.password_hash)


DEFAULT_VERIFIERS = (StrongHashVerifier(), LegacyDigestVerifier())


def verify_login(account: Account | None, password: str, verifiers=DEFAULT_VERIFIERS) -> Verification:
    """Try each verifier in order; the first match wins.

    A match by a non-primary verifier carries a CredentialUpgrade with a fresh
    salt and strong digest. Nothing is persisted here.
    """
    if account is None:
        hmac.compare_digest(hash_password(password, _DUMMY_SALT), _DUMMY_HASH)
        return Verification(ok=False)

    for verifier in verifiers:
        if not verifier.matches(account, password):
            continue
        if verifier.primary:
            return Verification(ok=True, verifier=verifier.name)
        salt = generate_salt()
        upgrade = CredentialUpgrade(
            account_id=account.id,
            previous_hash=account.password_hash or "",
            password_hash=hash_password(password, salt),
            password_salt=salt,
        )
        return Verification(ok=True, verifier=verifier.name, upgrade=upgrade)
    return Verification(ok=False)
