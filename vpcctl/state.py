"""
Resource ledger: the durable record of which VPC resources exist.

The ledger is a text file with one ``logical_name=provider_id`` pair per
line. It is the only thing consulted when tearing the VPC down, so every
mutation is flushed and fsynced before the caller moves on.
"""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .errors import LedgerIOFailed, LedgerLocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceRecord:
    """A logical resource name and the identifier the provider assigned to it."""
    logical_name: str
    provider_id: str


class Ledger:
    """Append/query/erase store backed by a ``name=value`` text file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    @property
    def events_path(self) -> Path:
        return self.path.with_name(self.path.stem + ".events.ndjson")

    def exists(self) -> bool:
        return self.path.exists()

    def records(self) -> List[ResourceRecord]:
        """
        Read all records in file order.

        Returns:
            List of records; empty if the ledger file doesn't exist

        Raises:
            LedgerIOFailed: If the file exists but cannot be read
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r") as f:
                lines = f.read().splitlines()
        except OSError as e:
            raise LedgerIOFailed(str(self.path), e)

        records = []
        for line in lines:
            line = line.strip()
            if not line or "=" not in line:
                continue
            name, value = line.split("=", 1)
            records.append(ResourceRecord(name, value))
        return records

    def lookup(self, name: str) -> Optional[str]:
        """Return the provider id recorded for name, or None."""
        for record in self.records():
            if record.logical_name == name:
                return record.provider_id
        return None

    def is_empty(self) -> bool:
        return not self.records()

    def reset(self) -> None:
        """Truncate the ledger, creating it if needed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerIOFailed(str(self.path), e)
        logger.debug(f"Ledger reset: {self.path}")

    def record(self, name: str, provider_id: str) -> None:
        """
        Append a ``name=provider_id`` entry and make it durable.

        Args:
            name: Logical resource name
            provider_id: Identifier returned by the provider

        Raises:
            LedgerIOFailed: If the write fails or name is already recorded
        """
        if self.lookup(name) is not None:
            raise LedgerIOFailed(str(self.path), ValueError(f"{name} is already recorded"))

        try:
            with open(self.path, "a") as f:
                f.write(f"{name}={provider_id}\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerIOFailed(str(self.path), e)
        logger.debug(f"Recorded {name}={provider_id}")

    def forget(self, name: str) -> None:
        """
        Remove the entry for name.

        The remaining entries are written to a temporary file which then
        atomically replaces the ledger.
        """
        remaining = [r for r in self.records() if r.logical_name != name]
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            with open(tmp_path, "w") as f:
                for r in remaining:
                    f.write(f"{r.logical_name}={r.provider_id}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise LedgerIOFailed(str(self.path), e)
        logger.debug(f"Forgot {name}")

    def remove(self) -> None:
        """Delete the backing file. No error if it doesn't exist."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise LedgerIOFailed(str(self.path), e)
        logger.debug(f"Ledger removed: {self.path}")

    @contextmanager
    def lock(self) -> Iterator[None]:
        """
        Hold an exclusive lock file for the duration of a run.

        Raises:
            LedgerLocked: If another run already holds the lock
            LedgerIOFailed: If the lock file cannot be created
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise LedgerLocked(str(self.lock_path))
        except OSError as e:
            raise LedgerIOFailed(str(self.lock_path), e)

        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            try:
                self.lock_path.unlink()
            except FileNotFoundError:
                pass
