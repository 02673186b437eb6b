"""Store adapters encapsulating persistence of student records.

Both adapters implement the same small contract (`StudentStore`) and
accept Mongo-style filter dictionaries: a plain value means equality,
a dict maps comparison operators (`$eq`, `$ne`, `$lt`, `$lte`, `$gt`,
`$gte`) to values. Filters on unknown fields match nothing. Adapters
return `StudentRecord` objects and raise `StoreError` for any storage
failure other than "nothing matched".
"""

import logging
import operator
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .schemas import FIELDS, StudentRecord

logger = logging.getLogger("roster.store")

_OPERATORS = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$lt": operator.lt,
    "$lte": operator.le,
    "$gt": operator.gt,
    "$gte": operator.ge,
}


class StoreError(Exception):
    """Raised when the underlying store fails for any reason other than not-found."""


class DuplicateStudentError(StoreError):
    """Raised by `insert` when a record with the same netid already exists."""

    def __init__(self, netid: str):
        super().__init__(f"student with netid {netid!r} already exists")
        self.netid = netid


def check_patch(patch: Mapping[str, Any]) -> None:
    """Reject patches that touch the identifier or name unknown fields."""
    if "netid" in patch:
        raise ValueError("netid cannot be changed once stored")
    unknown = [k for k in patch if k not in FIELDS]
    if unknown:
        raise ValueError(f"unknown fields in patch: {', '.join(unknown)}")


class StudentStore(ABC):
    """Persistence capability consumed by the services."""

    @abstractmethod
    def find_one(self, filter: Mapping[str, Any]) -> Optional[StudentRecord]:
        """Return the first record matching `filter` in storage order, or `None`."""

    @abstractmethod
    def find_all(self) -> List[StudentRecord]:
        """Return every record in insertion order."""

    @abstractmethod
    def insert(self, record: StudentRecord) -> None:
        """Store a new record; raise `DuplicateStudentError` if its netid is taken."""

    @abstractmethod
    def update_one(self, filter: Mapping[str, Any], patch: Mapping[str, Any]) -> bool:
        """Set the `patch` fields on the first matching record.

        Returns False when nothing matched.
        """

    @abstractmethod
    def remove_all(self, filter: Mapping[str, Any]) -> int:
        """Delete every matching record and return how many were removed."""

    def close(self) -> None:
        pass


class SqlStudentStore(StudentStore):
    """Student store on a SQLModel engine.

    A new `Session` is opened for every call so a single store can be
    shared by concurrently running requests.
    """
    def __init__(self, engine):
        self.engine = engine

    def _conditions(self, filter: Mapping[str, Any]) -> Optional[list]:
        conditions = []
        for field, expected in filter.items():
            if field not in FIELDS:
                return None
            column = getattr(models.Student, field)
            if isinstance(expected, dict):
                for op, value in expected.items():
                    compare = _OPERATORS.get(op)
                    if compare is None:
                        raise ValueError(f"unsupported filter operator: {op}")
                    conditions.append(compare(column, value))
            else:
                conditions.append(column == expected)
        return conditions

    def _select(self, conditions: list):
        stmt = select(models.Student).order_by(models.Student.id)
        if conditions:
            stmt = stmt.where(*conditions)
        return stmt

    @staticmethod
    def _to_record(row: models.Student) -> StudentRecord:
        return StudentRecord.model_validate(row.model_dump(exclude={"id"}))

    def find_one(self, filter):
        conditions = self._conditions(filter)
        if conditions is None:
            return None
        try:
            with Session(self.engine) as session:
                row = session.exec(self._select(conditions)).first()
                return self._to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"find failed: {exc}") from exc

    def find_all(self):
        try:
            with Session(self.engine) as session:
                rows = session.exec(self._select([])).all()
                return [self._to_record(r) for r in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"find failed: {exc}") from exc

    def insert(self, record):
        try:
            with Session(self.engine) as session:
                session.add(models.Student(**record.model_dump()))
                session.commit()
        except IntegrityError as exc:
            # unique index on netid
            logger.info("insert rejected by unique index: netid=%s", record.netid)
            raise DuplicateStudentError(record.netid) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"insert failed: {exc}") from exc

    def update_one(self, filter, patch):
        check_patch(patch)
        conditions = self._conditions(filter)
        if conditions is None:
            return False
        try:
            with Session(self.engine) as session:
                row = session.exec(self._select(conditions)).first()
                if row is None:
                    return False
                for field, value in patch.items():
                    setattr(row, field, value)
                session.add(row)
                session.commit()
                return True
        except SQLAlchemyError as exc:
            raise StoreError(f"update failed: {exc}") from exc

    def remove_all(self, filter):
        conditions = self._conditions(filter)
        if conditions is None:
            return 0
        try:
            with Session(self.engine) as session:
                rows = session.exec(self._select(conditions)).all()
                for row in rows:
                    session.delete(row)
                session.commit()
                return len(rows)
        except SQLAlchemyError as exc:
            raise StoreError(f"remove failed: {exc}") from exc

    def close(self):
        self.engine.dispose()


class MongoStudentStore(StudentStore):
    """Student store on a pymongo collection.

    Filters are passed to MongoDB unchanged; the `_id` field never leaves
    the adapter.
    """
    def __init__(self, collection: Collection):
        self.collection = collection

    def ensure_indexes(self) -> None:
        """Create the unique netid index that backs duplicate detection."""
        try:
            self.collection.create_index("netid", unique=True)
        except PyMongoError as exc:
            raise StoreError(f"index creation failed: {exc}") from exc

    @staticmethod
    def _to_record(doc: Dict[str, Any]) -> StudentRecord:
        try:
            return StudentRecord.model_validate(doc)
        except ValidationError as exc:
            raise StoreError(f"stored document is not a valid student: {exc}") from exc

    def find_one(self, filter):
        try:
            doc = self.collection.find_one(dict(filter), {"_id": 0}, sort=[("_id", ASCENDING)])
        except PyMongoError as exc:
            raise StoreError(f"find failed: {exc}") from exc
        return self._to_record(doc) if doc is not None else None

    def find_all(self):
        try:
            docs = list(self.collection.find({}, {"_id": 0}).sort("_id", ASCENDING))
        except PyMongoError as exc:
            raise StoreError(f"find failed: {exc}") from exc
        return [self._to_record(d) for d in docs]

    def insert(self, record):
        try:
            self.collection.insert_one(record.model_dump())
        except DuplicateKeyError as exc:
            logger.info("insert rejected by unique index: netid=%s", record.netid)
            raise DuplicateStudentError(record.netid) from exc
        except PyMongoError as exc:
            raise StoreError(f"insert failed: {exc}") from exc

    def update_one(self, filter, patch):
        check_patch(patch)
        try:
            result = self.collection.update_one(dict(filter), {"$set": dict(patch)})
        except PyMongoError as exc:
            raise StoreError(f"update failed: {exc}") from exc
        return result.matched_count > 0

    def remove_all(self, filter):
        try:
            result = self.collection.delete_many(dict(filter))
        except PyMongoError as exc:
            raise StoreError(f"remove failed: {exc}") from exc
        return result.deleted_count

    def close(self):
        self.collection.database.client.close()
