"""
Cross-process run lease.

The HTTP API and the scheduler process each own a SyncOrchestrator; the
in-memory run lock only covers one of them. The lease is a row in the shared
store, so a run started by either process blocks the other.

A lease is claimed by inserting its row, or by taking over a row whose
``expires_at`` has passed (a holder that crashed without releasing). The
holder extends it while it works and deletes it when done.
"""
import os
import socket
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from nfl_data_sync.core.database import Database
from nfl_data_sync.core.logging import get_logger
from nfl_data_sync.models.tables import SyncRunLease
from nfl_data_sync.repositories.base import StoreError
from nfl_data_sync.utils.timezone import utcnow

logger = get_logger(__name__)

FULL_SYNC_LEASE = "full_sync"
DEFAULT_LEASE_TTL_MINUTES = 120.0


def new_owner_id() -> str:
    """Identify one orchestrator: host, process and a random suffix."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class RunLease:
    """Claim, extend and release one named lease row."""

    def __init__(
        self,
        database: Database,
        name: str = FULL_SYNC_LEASE,
        ttl_minutes: float = DEFAULT_LEASE_TTL_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.name = name
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def try_acquire(self, owner: str) -> bool:
        """
        Claim the lease for ``owner``.

        Returns:
            True if claimed, False while another owner holds an unexpired lease

        Raises:
            StoreError: If the store cannot be reached
        """
        now = self.clock()
        with self.database.session() as db:
            try:
                taken_over = db.execute(
                    update(SyncRunLease)
                    .where(SyncRunLease.name == self.name, SyncRunLease.expires_at <= now)
                    .values(owner=owner, acquired_at=now, expires_at=now + self.ttl)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if taken_over:
                    db.commit()
                    logger.warning(f"Took over expired {self.name} lease", extra={"owner": owner})
                    return True

                if db.get(SyncRunLease, self.name) is not None:
                    db.rollback()
                    return False

                db.add(SyncRunLease(name=self.name, owner=owner, acquired_at=now, expires_at=now + self.ttl))
                db.commit()
            except IntegrityError:
                # Another process inserted the row first
                db.rollback()
                return False
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"Failed to claim the {self.name} lease") from e

        logger.debug(f"Claimed {self.name} lease", extra={"owner": owner})
        return True

    def renew(self, owner: str) -> bool:
        """
        Push the expiry of a held lease forward.

        Returns:
            False if ``owner`` no longer holds the lease or the store failed
        """
        now = self.clock()
        with self.database.session() as db:
            try:
                renewed = db.execute(
                    update(SyncRunLease)
                    .where(SyncRunLease.name == self.name, SyncRunLease.owner == owner)
                    .values(expires_at=now + self.ttl)
                    .execution_options(synchronize_session=False)
                ).rowcount
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to renew the {self.name} lease: {e}", extra={"owner": owner})
                return False

        if not renewed:
            logger.warning(f"The {self.name} lease is no longer held by this process", extra={"owner": owner})
        return bool(renewed)

    def release(self, owner: str) -> None:
        """Drop the lease if ``owner`` holds it. Failures are logged; the lease then expires."""
        with self.database.session() as db:
            try:
                db.execute(
                    delete(SyncRunLease)
                    .where(SyncRunLease.name == self.name, SyncRunLease.owner == owner)
                    .execution_options(synchronize_session=False)
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to release the {self.name} lease: {e}", extra={"owner": owner})

    def holder(self) -> Optional[str]:
        """
        Owner of the unexpired lease, or None when it is free.

        Raises:
            StoreError: If the store cannot be read
        """
        now = self.clock()
        with self.database.session() as db:
            try:
                lease = db.get(SyncRunLease, self.name)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to read the {self.name} lease") from e
            if lease is None or lease.expires_at <= now:
                return None
            return lease.owner
