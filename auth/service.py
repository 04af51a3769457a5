"""
auth/service.py -- Account signup, login, update and password reset flows.

AuthService composes the account repository, the verifier chain and the reset
token manager. Every operation validates its inputs first and raises a
core.errors subclass on failure; the API layer maps those to HTTP statuses.

Every mutation runs inside AccountStore.edit(), the accounts single-writer
block, so two concurrent signups for the same email cannot both pass the
uniqueness check.

Login never says whether the email or the password was wrong.

Layer rule: no imports from api/ or live/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from auth.models import Account, CredentialUpgrade
from auth.passwords import generate_salt, hash_password, verify_login
from auth.reset import ResetTokenManager
from auth.store import AccountStore
from core.config import now_iso, now_ms
from core.errors import AuthError, ConflictError, NoRequestError, NotFoundError, ValidationError
from store.records import new_record_id

logger = logging.getLogger("accounthub.auth")


class AuthService:
    def __init__(
        self,
        accounts: AccountStore,
        tokens: ResetTokenManager | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.accounts = accounts
        self.tokens = tokens or ResetTokenManager(clock=clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[Account]:
        return self.accounts.list_all()

    def get_by_id(self, account_id: str | None) -> Account:
        if not account_id:
            raise ValidationError("id required")
        account = self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("not found")
        return account

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    def signup(self, email: str | None, password: str | None, name: str | None = None, role: str | None = None) -> Account:
        """Create an account with a freshly salted scrypt credential."""
        if not email or not password:
            raise ValidationError("email and password required")

        salt = generate_salt()
        password_hash = hash_password(password, salt)

        with self.accounts.edit() as batch:
            if batch.by_email(email) is not None:
                raise ConflictError("email exists")
            account = Account(
                id=new_record_id("acct", batch.ids(), self._clock),
                email=email,
                name=name,
                role=role or "user",
                created_at=now_iso(),
                password_hash=password_hash,
                password_salt=salt,
            )
            batch.add(account)

        logger.info("Account created: %s", account.id)
        return account

    def login(self, email: str | None, password: str | None) -> Account:
        """Authenticate by email + password.

        A legacy-digest match is upgraded to a strong hash before returning.
        """
        if not email or not password:
            raise ValidationError("email and password required")

        account = self.accounts.get_by_email(email)
        result = verify_login(account, password)
        if not result.ok:
            raise AuthError("invalid credentials")

        if result.upgrade is not None:
            self._apply_upgrade(result.upgrade)
            logger.info("Upgraded legacy password for %s", account.email)
        return account

    def _apply_upgrade(self, upgrade: CredentialUpgrade) -> None:
        with self.accounts.edit() as batch:
            target = batch.by_id(upgrade.account_id)
            # A concurrent reset or upgrade already replaced the legacy hash.
            if target is None or target.password_hash != upgrade.previous_hash:
                return
            target.password_hash = upgrade.password_hash
            target.password_salt = upgrade.password_salt

    # ------------------------------------------------------------------
    # Profile update
    # ------------------------------------------------------------------

    def update(self, account_id: str | None, name: str | None = None, description: str | None = None) -> Account:
        """Update name and/or description. Nothing else is mutable here."""
        if not account_id:
            raise ValidationError("id required")
        with self.accounts.edit() as batch:
            account = batch.by_id(account_id)
            if account is None:
                raise NotFoundError("not found")
            if isinstance(name, str):
                account.name = name
            if isinstance(description, str):
                account.description = description
        return account

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_reset(self, email: str | None) -> str:
        """Start a reset and return the plaintext token (shown once)."""
        if not email:
            raise ValidationError("email required")
        with self.accounts.edit() as batch:
            account = batch.by_email(email)
            if account is None:
                raise NotFoundError("not found")
            token = self.tokens.issue(account)
        logger.info("Password reset requested for %s", account.id)
        return token

    def complete_reset(self, email: str | None, token: str | None, new_password: str | None) -> None:
        """Set a new password if token matches the pending, unexpired reset.

        The token is consumed in the same write, so it cannot be replayed.
        """
        if not email or not token or not new_password:
            raise ValidationError("email, token and newPassword required")

        salt = generate_salt()
        password_hash = hash_password(new_password, salt)

        with self.accounts.edit() as batch:
            account = batch.by_email(email)
            if account is None:
                raise NoRequestError()
            self.tokens.validate(account, token)
            account.password_salt = salt
            account.password_hash = password_hash
            self.tokens.consume(account)

        logger.info("Password reset completed for %s", account.id)
