"""Content-hash store for the specfile and lockfile.

Records the SHA-256 digest of the specfile and lockfile as they were the last
time this tool finished an operation, so later runs can skip re-locking or
re-installing when nothing changed. Concurrent updates against the same
location are not coordinated; the last writer wins.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import sys
import tempfile
from dataclasses import dataclass

from constants import ExitCodes

logger = logging.getLogger(__name__)

_HASH_CHUNK = 64 * 1024


@dataclass
class StoreRecord:
    """Last observed digests. Empty strings mean "never observed"."""

    specfile_hash: str = ""
    lockfile_hash: str = ""

    def to_dict(self):
        return {"specfileHash": self.specfile_hash, "lockfileHash": self.lockfile_hash}

    @classmethod
    def from_dict(cls, data) -> "StoreRecord":
        specfile_hash = data.get("specfileHash", "")
        lockfile_hash = data.get("lockfileHash", "")
        if not isinstance(specfile_hash, str) or not isinstance(lockfile_hash, str):
            raise ValueError("hash fields must be strings")
        return cls(specfile_hash=specfile_hash, lockfile_hash=lockfile_hash)


def hash_file(path: str) -> str:
    """Return the hex SHA-256 of ``path``, or "" when the file does not exist."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_HASH_CHUNK), b""):
                digest.update(chunk)
    except FileNotFoundError:
        return ""
    except OSError as exc:
        logger.error("%s: %s", path, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)
    return digest.hexdigest()


def read_store(location: str) -> StoreRecord:
    """Read the record at ``location``; a missing file yields the default record."""
    try:
        with open(location, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        return StoreRecord()
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("%s: %s", location, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if not isinstance(data, dict):
        logger.error("%s: expected a JSON object", location)
        sys.exit(ExitCodes.FILE_ERROR.value)
    try:
        return StoreRecord.from_dict(data)
    except ValueError as exc:
        logger.error("%s: %s", location, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)


def write_store(record: StoreRecord, location: str) -> None:
    """Atomically persist ``record``; readable and writable by the owner only."""
    path = os.path.abspath(location)
    directory = os.path.dirname(path)
    try:
        os.makedirs(directory, mode=0o700, exist_ok=True)
    except OSError as exc:
        logger.error("%s: %s", directory, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    payload = json.dumps(record.to_dict(), indent=2, sort_keys=True) + "\n"
    # mkstemp creates the file with mode 0600
    fd, tmp_path = tempfile.mkstemp(prefix=".store-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        logger.error("%s: %s", path, exc)
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        sys.exit(ExitCodes.FILE_ERROR.value)
    logger.debug("Wrote store %s", path)


def update_store_hashes(specfile: str, lockfile: str, location: str) -> StoreRecord:
    """Record the current digests of ``specfile`` and ``lockfile``.

    Both files must exist; nothing is written when either is missing.
    """
    record = read_store(location)

    specfile_hash = hash_file(specfile)
    if not specfile_hash:
        logger.error("file does not exist: %s", specfile)
        sys.exit(ExitCodes.FILE_ERROR.value)
    lockfile_hash = hash_file(lockfile)
    if not lockfile_hash:
        logger.error("file does not exist: %s", lockfile)
        sys.exit(ExitCodes.FILE_ERROR.value)

    record.specfile_hash = specfile_hash
    record.lockfile_hash = lockfile_hash
    write_store(record, location)
    return record


def does_specfile_hash_match(specfile: str, location: str) -> bool:
    """True when ``specfile`` is unchanged since the last recorded update."""
    current = hash_file(specfile)
    return bool(current) and current == read_store(location).specfile_hash


def does_lockfile_hash_match(lockfile: str, location: str) -> bool:
    """True when ``lockfile`` is unchanged since the last recorded update."""
    current = hash_file(lockfile)
    return bool(current) and current == read_store(location).lockfile_hash
