"""
store/ingest.py -- Import collection files written by the legacy Node server.

The legacy Node server kept one pretty-printed JSON array per collection under
database/ (accounts.json, media.json, followers.json). import_directory()
loads whichever of those files exist into a RecordStore so an existing
deployment can be migrated without re-creating accounts. Legacy MD5 password
hashes are imported as-is and upgraded on the account's next login.

No external dependencies beyond stdlib.
"""

import json
import logging
from pathlib import Path

from store.records import ACCOUNTS, COLLECTIONS, RecordStore

logger = logging.getLogger("accounthub.store.ingest")

# Keys every record of a collection must carry as non-empty strings. Account
# lookups map each stored record, so one account without an id or email would
# break every account operation.
REQUIRED_KEYS: dict[str, tuple[str, ...]] = {ACCOUNTS: ("id", "email")}


class IngestError(Exception):
    """A collection file exists but its contents cannot be imported."""


def load_collection_file(path: Path) -> list[dict]:
    """Parse one collection file and return its records.

    Raises IngestError when the file is not valid JSON, is not an array, or
    contains anything other than objects. A `null` document (what the
    legacy server wrote for an empty store) is treated as an empty list.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, ValueError) as exc:
        raise IngestError(f"{path.name}: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, list):
        raise IngestError(f"{path.name}: expected a JSON array, got {type(data).__name__}")
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise IngestError(f"{path.name}: record {index} is not an object")
    return data


def check_required_keys(name: str, records: list[dict], source: str) -> None:
    """Raise IngestError if a record lacks one of name's REQUIRED_KEYS."""
    for index, record in enumerate(records):
        for key in REQUIRED_KEYS.get(name, ()):
            value = record.get(key)
            if not isinstance(value, str) or not value:
                raise IngestError(f"{source}: record {index} has no {key!r}")


def import_directory(store: RecordStore, directory: Path) -> dict[str, int]:
    """Import every <collection>.json found in directory into store.

    Each file replaces the matching collection wholesale. Missing files are
    skipped. Returns {collection: record_count} for the files imported.
    All files are parsed before any write so a bad file leaves the store
    untouched.
    """
    directory = Path(directory).resolve()
    if not directory.is_dir():
        raise IngestError(f"'{directory}' is not a directory")

    loaded: dict[str, list[dict]] = {}
    for name in COLLECTIONS:
        path = directory / f"{name}.json"
        if not path.is_file():
            logger.info("Skipping %s (no %s)", name, path.name)
            continue
        records = load_collection_file(path)
        check_required_keys(name, records, path.name)
        loaded[name] = records

    for name, records in loaded.items():
        store.write(name, records)
        logger.info("Imported %d %s record(s)", len(records), name)
    return {name: len(records) for name, records in loaded.items()}
