"""
File-backed persistence for the code watcher.

Two files live in the data directory:
- ``codes.json``: the ``CodeWatchState`` aggregate
- ``code-watch.lock``: the advisory lease that keeps two instances sharing
  the directory from scanning at the same time

Every read goes through the pydantic schema. A state file that fails to
parse degrades to an empty state; a lock file that fails to parse is
treated as stale.
"""

import json
import logging
import os
import socket
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from src.codes.schemas import STATE_VERSION, CodeWatchState, Lease

logger = logging.getLogger(__name__)

STATE_FILENAME = "codes.json"
LOCK_FILENAME = "code-watch.lock"


def default_lease_holder() -> str:
    """Identity of this process for lease ownership: ``<hostname>-<pid>``."""
    return f"{socket.gethostname()}-{os.getpid()}"


def _atomic_write(path: Path, content: str) -> None:
    """Write a whole file through a temp file and rename it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class CodeStore:
    """
    JSON state file plus lease file in one data directory.

    Usage:
        store = CodeStore("data")
        state = store.load()
        if store.acquire_lease(holder, timedelta(minutes=2)):
            try:
                ...
                store.save(state)
            finally:
                store.release_lease(holder)
    """

    def __init__(self, data_path: str | Path) -> None:
        self.data_path = Path(data_path)
        self.state_path = self.data_path / STATE_FILENAME
        self.lock_path = self.data_path / LOCK_FILENAME

    def load(self) -> CodeWatchState:
        """
        Load persisted state.

        Never raises: a missing, unreadable or malformed file yields a fresh
        empty state.
        """
        try:
            raw = self.state_path.read_text(encoding="utf-8")
            state = CodeWatchState.model_validate_json(raw)
        except FileNotFoundError:
            logger.debug("Code state file %s not found; starting empty", self.state_path)
            return CodeWatchState()
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Code state load failed for %s; using defaults: %s", self.state_path, e)
            return CodeWatchState()

        logger.debug("Code state loaded from %s: %d codes", self.state_path, len(state.codes))
        return state

    def save(self, state: CodeWatchState) -> None:
        """
        Validate and write state.

        The in-memory aggregate is re-validated before writing so a partially
        built object never reaches disk.

        Raises:
            OSError: If the directory or file cannot be written
            ValidationError: If the state does not match the schema
        """
        try:
            self.data_path.mkdir(parents=True, exist_ok=True)
            dumped = state.model_dump(by_alias=True)
            validated = CodeWatchState.model_validate(
                {
                    "version": STATE_VERSION,
                    "sourceState": dumped.get("sourceState") or {},
                    "codes": dumped.get("codes") or {},
                }
            )
            content = validated.model_dump_json(by_alias=True, exclude_none=True, indent=2)
            _atomic_write(self.state_path, content)
        except (OSError, ValidationError) as e:
            logger.error("Code state save failed for %s: %s", self.state_path, e)
            raise

        logger.debug("Code state saved to %s: %d codes", self.state_path, len(validated.codes))

    def read_lease(self) -> Lease | None:
        """Current lease on disk, or None if absent or unparsable."""
        try:
            return Lease.model_validate_json(self.lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError):
            return None

    def acquire_lease(
        self,
        holder: str,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> bool:
        """
        Try to take the cross-process lease.

        The lock file is created exclusively. If it already exists, it is
        taken over when it has expired, when it already belongs to
        ``holder``, or when it cannot be parsed.

        Args:
            holder: Identity of the caller
            ttl: How long the lease stays valid
            now: Current time (defaults to UTC now)

        Returns:
            True if the lease is now held by ``holder``
        """
        now = now or datetime.now(timezone.utc)
        lease = Lease(holder=holder, acquired_at=now, expires_at=now + ttl)
        content = lease.model_dump_json(by_alias=True, indent=2)

        try:
            self.data_path.mkdir(parents=True, exist_ok=True)
            with open(self.lock_path, "x", encoding="utf-8") as handle:
                handle.write(content)
            logger.debug("Code watch lease acquired by %s (create)", holder)
            return True
        except FileExistsError:
            pass
        except OSError as e:
            logger.warning("Code watch lease create failed for %s: %s", holder, e)
            return False

        try:
            existing = Lease.model_validate_json(self.lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Code watch lease unreadable; replacing lock: %s", e)
        else:
            if existing.expires_at > now and existing.holder != holder:
                logger.debug(
                    "Code watch lease held by %s until %s",
                    existing.holder,
                    existing.expires_at.isoformat(),
                )
                return False

        try:
            _atomic_write(self.lock_path, content)
        except OSError as e:
            logger.warning("Code watch lease replace failed for %s: %s", holder, e)
            return False

        logger.debug("Code watch lease acquired by %s (replace)", holder)
        return True

    def release_lease(self, holder: str) -> None:
        """
        Drop the lease if ``holder`` owns it.

        A lease taken over by another instance is left alone. A missing lock
        file is not an error.
        """
        try:
            existing = Lease.model_validate_json(self.lock_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, ValueError, ValidationError) as e:
            logger.debug("Code watch lease release skipped for %s: %s", holder, e)
            return

        if existing.holder != holder:
            return

        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            return
        logger.debug("Code watch lease released by %s", holder)

    def describe(self) -> dict:
        """Paths and lease owner, for diagnostics."""
        lease = self.read_lease()
        return {
            "state_path": str(self.state_path),
            "lock_path": str(self.lock_path),
            "lease": json.loads(lease.model_dump_json(by_alias=True)) if lease else None,
        }
