"""
tests/test_cli.py -- Tests for the maintenance commands in main.py.

The commands read DATABASE_URL through get_settings(); tests point it at a
file database under tmp_path by patching main.get_settings.
"""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

import main
from store.records import ACCOUNTS, RecordStore


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setattr(main, "get_settings", lambda: SimpleNamespace(database_url=url))
    return url


def _read_accounts(url: str) -> list[dict]:
    store = RecordStore(url)
    try:
        return store.read(ACCOUNTS)
    finally:
        store.close()


def test_create_account(db_url, capsys):
    code = main.main(["create-account", "--email", "admin@x.com", "--password", "pw1", "--role", "admin"])
    assert code == 0
    assert "admin@x.com" in capsys.readouterr().out
    accounts = _read_accounts(db_url)
    assert [a["email"] for a in accounts] == ["admin@x.com"]
    assert accounts[0]["role"] == "admin"


def test_create_account_duplicate_fails(db_url, capsys):
    main.main(["create-account", "--email", "a@x.com", "--password", "pw1"])
    code = main.main(["create-account", "--email", "a@x.com", "--password", "pw1"])
    assert code == 1
    assert "email exists" in capsys.readouterr().out


def test_import_directory(db_url, tmp_path, capsys):
    data_dir = tmp_path / "database"
    data_dir.mkdir()
    (data_dir / "accounts.json").write_text(
        json.dumps([{"id": "acct_1", "email": "old@x.com", "createdAt": "", "passwordHash": "x"}]),
        encoding="utf-8",
    )
    code = main.main(["import", str(data_dir)])
    assert code == 0
    assert "accounts: 1 record(s)" in capsys.readouterr().out
    assert _read_accounts(db_url)[0]["id"] == "acct_1"


def test_import_empty_directory_fails(db_url, tmp_path):
    assert main.main(["import", str(tmp_path)]) == 1


def test_import_bad_file_fails(db_url, tmp_path, capsys):
    (tmp_path / "media.json").write_text('{"id": 1}', encoding="utf-8")
    assert main.main(["import", str(tmp_path)]) == 1
    assert "Import failed" in capsys.readouterr().out
