"""
auth/store.py -- Account persistence on top of the "accounts" collection.

Pattern: Repository + Data Mapper. AccountStore is the repository;
Account.from_record / to_record are the mappers. No business rules live here:
uniqueness, credential checks and reset handling belong to auth/service.py.

edit() is the only write path. It holds the accounts collection lock for the
whole block, so the service's check-then-write sequences (email uniqueness on
signup, token validation on reset) cannot race a concurrent writer.

Layer rule: no imports from api/ or live/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from auth.models import Account
from store.records import ACCOUNTS, RecordStore


class AccountBatch:
    """Mutable view of all accounts handed out by AccountStore.edit()."""

    def __init__(self, accounts: list[Account]) -> None:
        self.accounts = accounts

    def by_email(self, email: str) -> Account | None:
        """Exact, case-sensitive email match."""
        return next((a for a in self.accounts if a.email == email), None)

    def by_id(self, account_id: str) -> Account | None:
        return next((a for a in self.accounts if a.id == account_id), None)

    def add(self, account: Account) -> None:
        self.accounts.append(account)

    def ids(self) -> set[str]:
        return {a.id for a in self.accounts}


class AccountStore:
    """Repository for Account entities.

    Usage:
        accounts = AccountStore(RecordStore())
        with accounts.edit() as batch:
            batch.by_email("a@x.com").name = "A"
        accounts.get_by_id("acct_1700000000000")
    """

    def __init__(self, records: RecordStore) -> None:
        self.records = records

    def list_all(self) -> list[Account]:
        return [Account.from_record(r) for r in self.records.read(ACCOUNTS)]

    def get_by_email(self, email: str) -> Account | None:
        return AccountBatch(self.list_all()).by_email(email)

    def get_by_id(self, account_id: str) -> Account | None:
        return AccountBatch(self.list_all()).by_id(account_id)

    @contextmanager
    def edit(self) -> Iterator[AccountBatch]:
        """Load every account under the collection lock and persist on exit.

        If the block raises, nothing is written.
        """
        with self.records.mutate(ACCOUNTS) as raw:
            batch = AccountBatch([Account.from_record(r) for r in raw])
            yield batch
            raw[:] = [a.to_record() for a in batch.accounts]
