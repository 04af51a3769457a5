"""
auth/reset.py -- Password reset token issue / validate / consume.

A reset token is secrets.token_hex(24) (192 bits). Only sha256(token) is kept
on the account, next to an expiry in epoch milliseconds; the plaintext is
handed back to the caller once. ResetTokenManager never persists anything
itself -- the service calls it inside the accounts single-writer block and
writes the account back in the same step.

Layer rule: no imports from api/ or live/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable

from auth.models import Account
from core.config import now_ms
from core.errors import ExpiredError, MismatchError, NoRequestError


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ResetTokenManager:
    """Issues and checks single-use, time-limited reset tokens.

    clock returns the current time in epoch milliseconds; tests pass a fake
    one to step past the expiry without sleeping.
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], int] = now_ms) -> None:
        self.ttl_ms = ttl_seconds * 1000
        self._clock = clock

    def issue(self, account: Account) -> str:
        """Set a fresh pending reset on account and return the plaintext token.

        Any earlier pending token is replaced.
        """
        token = secrets.token_hex(24)
        account.reset_token_hash = hash_token(token)
        account.reset_token_expiry = self._clock() + self.ttl_ms
        return token

    def validate(self, account: Account, token: str) -> None:
        """Raise a ResetError subclass unless token completes account's pending reset."""
        if not account.reset_pending:
            raise NoRequestError()
        if self._clock() > account.reset_token_expiry:
            raise ExpiredError()
        if not hmac.compare_digest(hash_token(token), account.reset_token_hash):
            raise MismatchError()

    def consume(self, account: Account) -> None:
        account.reset_token_hash = None
        account.reset_token_expiry = None
