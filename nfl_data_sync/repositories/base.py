"""
Base repository for the NFL document store.

Every collection stores the full upstream record as a JSON document and keeps
its natural key in unique, indexed columns. The core write primitive is an
upsert by natural key that replaces the whole document.

Example:
    class StadiumRepository(DocumentRepository[Stadium]):
        record_type = StadiumRecord
        document_type = Stadium
        natural_key = ("stadium_id",)

        def columns_for(self, document: Stadium) -> dict:
            return {"stadium_id": document.stadium_id, "name": document.name}
"""
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Generic, Iterable, Iterator, List, Optional, Type, TypeVar

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nfl_data_sync.core.logging import get_logger
from nfl_data_sync.models.documents import SportsDataDocument
from nfl_data_sync.utils.timezone import utcnow

logger = get_logger(__name__)

D = TypeVar("D", bound=SportsDataDocument)


class StoreError(Exception):
    """The document store could not complete an operation."""


class InvalidKeyError(ValueError):
    """A natural key or internal id is missing or malformed."""


class UpsertResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class BulkUpsertResult:
    created: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.failed

    @property
    def written(self) -> int:
        return self.created + self.updated

    def record(self, outcome: UpsertResult) -> None:
        if outcome is UpsertResult.CREATED:
            self.created += 1
        else:
            self.updated += 1


class DocumentRepository(Generic[D], ABC):
    """
    Base repository providing upsert and lookup over one collection table.

    Attributes:
        record_type: SQLAlchemy table class for the collection
        document_type: Pydantic document model stored in the collection
        natural_key: Column names forming the unique natural key
        db: The database session
    """

    record_type: ClassVar[Type[Any]]
    document_type: ClassVar[Type[SportsDataDocument]]
    natural_key: ClassVar[tuple[str, ...]]

    def __init__(self, db: Session):
        self.db = db

    @property
    def collection(self) -> str:
        return self.record_type.__tablename__

    @abstractmethod
    def columns_for(self, document: D) -> dict[str, Any]:
        """Natural key and indexed query columns lifted out of a document."""

    # ========================================================================
    # Error handling
    # ========================================================================

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to {operation} in {self.collection}: {e}",
                extra={"collection": self.collection},
            )
            raise StoreError(f"Failed to {operation} in {self.collection}") from e

    def _to_document(self, record: Any) -> D:
        try:
            document = self.document_type.model_validate(record.document)
        except ValidationError as e:
            raise StoreError(f"Corrupt document {record.id} in {self.collection}") from e
        document.id = record.id
        return document

    # ========================================================================
    # Writes
    # ========================================================================

    def upsert(self, document: D) -> UpsertResult:
        """
        Insert or replace a document by its natural key.

        The stored document is replaced wholesale and ``LastUpdated`` is set
        to now. Applying the same document twice leaves one stored copy.

        Args:
            document: Document to store

        Returns:
            UpsertResult.CREATED or UpsertResult.UPDATED

        Raises:
            InvalidKeyError: If the document has no usable natural key
            StoreError: If the database rejects the write
        """
        now = utcnow()
        stored = document.model_copy(update={"last_updated": now})
        columns = self.columns_for(stored)
        key = {name: columns[name] for name in self.natural_key}
        if any(value is None or value == "" for value in key.values()):
            raise InvalidKeyError(f"Missing natural key for {self.collection}: {key}")

        payload = stored.to_document()
        with self._store_errors("upsert document"):
            try:
                outcome = self._write(key, columns, payload, now)
                self.db.commit()
            except IntegrityError:
                # A concurrent writer inserted the same key first; replace it instead
                self.db.rollback()
                outcome = self._write(key, columns, payload, now)
                self.db.commit()
        return outcome

    def _write(self, key: dict[str, Any], columns: dict[str, Any], payload: dict, now) -> UpsertResult:
        record = self.db.query(self.record_type).filter_by(**key).one_or_none()
        if record is None:
            self.db.add(self.record_type(**columns, document=payload, last_updated=now))
            self.db.flush()
            return UpsertResult.CREATED

        for name, value in columns.items():
            setattr(record, name, value)
        record.document = payload
        record.last_updated = now
        return UpsertResult.UPDATED

    def upsert_many(self, documents: Iterable[D]) -> BulkUpsertResult:
        """
        Best-effort upsert of many documents; a failing item is logged and skipped.

        Returns:
            Counts of created, updated and failed documents
        """
        result = BulkUpsertResult()
        for document in documents:
            try:
                outcome = self.upsert(document)
            except (StoreError, InvalidKeyError) as e:
                result.failed += 1
                logger.warning(
                    f"Skipping document in {self.collection}: {e}",
                    extra={"collection": self.collection},
                )
                continue
            result.record(outcome)
        return result

    def delete(self, **key: Any) -> bool:
        """
        Delete the document matching a natural key.

        Returns:
            True if deleted, False if not found
        """
        with self._store_errors("delete document"):
            record = self.db.query(self.record_type).filter_by(**key).one_or_none()
            if record is None:
                return False
            self.db.delete(record)
            self.db.commit()
            return True

    # ========================================================================
    # Reads
    # ========================================================================

    def find_by_internal_id(self, id: str) -> Optional[D]:
        """
        Find a document by its internal storage id.

        Raises:
            InvalidKeyError: If ``id`` is not a UUID
        """
        try:
            uuid.UUID(id)
        except (TypeError, ValueError):
            raise InvalidKeyError(f"Malformed id: {id!r}") from None
        return self.find_one(self.record_type.id == id)

    def find_one(self, *criterion) -> Optional[D]:
        with self._store_errors("find document"):
            record = self.db.query(self.record_type).filter(*criterion).first()
        return self._to_document(record) if record is not None else None

    def find_many(
        self,
        *criterion,
        order_by: Optional[List[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[D]:
        """
        Find documents matching SQLAlchemy criteria.

        Args:
            criterion: Filter expressions over the collection table
            order_by: Column expressions to sort by
            limit: Maximum number of documents to return

        Returns:
            Matching documents (empty list when none)
        """
        with self._store_errors("find documents"):
            query = self.db.query(self.record_type)
            if criterion:
                query = query.filter(*criterion)
            if order_by:
                query = query.order_by(*order_by)
            if limit is not None:
                query = query.limit(limit)
            records = query.all()
        return [self._to_document(record) for record in records]

    def find_all(self, limit: Optional[int] = None) -> List[D]:
        return self.find_many(limit=limit)

    def count(self, *criterion) -> int:
        with self._store_errors("count documents"):
            query = self.db.query(func.count(self.record_type.id))
            if criterion:
                query = query.filter(*criterion)
            return query.scalar() or 0
