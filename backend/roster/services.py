"""Business logic services used by HTTP controllers.

Services receive an explicitly constructed store and perform the
validation and domain logic of each operation. They raise `ValueError`
for bad client input and let `StoreError` from the store propagate to
the caller, which decides how to report it.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .repositories import DuplicateStudentError, StoreError, StudentStore
from .schemas import INT64_MAX, INT64_MIN, INT_FIELDS, StudentRecord

logger = logging.getLogger("roster.services")

# band offsets relative to the class average
A_OFFSET = 10
B_OFFSET = 10
C_OFFSET = 20

_INT_LITERAL = re.compile(r"([+-]?)([0-9A-Za-z_]+)\Z")


class PartialUpdateError(StoreError):
    """A rating update failed mid-pass; earlier updates were kept."""

    def __init__(self, applied: int, total: int, reason: str):
        super().__init__(f"rating update failed after {applied} of {total} updates: {reason}")
        self.applied = applied
        self.total = total


def parse_year(raw: str) -> int:
    """Parse a year threshold from a path segment.

    The base follows the prefix: `0x` hex, `0o` or a bare leading `0`
    octal, `0b` binary, decimal otherwise. Underscores may separate
    digits. Whitespace, other characters and values outside the signed
    64-bit range raise `ValueError`.
    """
    match = _INT_LITERAL.match(raw or "")
    if match is None:
        raise ValueError(f"invalid year: {raw!r}")
    sign, body = match.group(1), match.group(2)
    if len(body) > 1 and body[0] == "0" and body[1] not in "xXoObB":
        body = "0o" + body[1:]
    try:
        value = int(sign + body, 0)
    except ValueError:
        raise ValueError(f"invalid year: {raw!r}")
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"year out of range: {raw!r}")
    return value


def coerce_filter_value(field_name: str, raw: str) -> Any:
    """Compare integer fields as integers when the query value allows it."""
    if field_name in INT_FIELDS:
        try:
            value = int(raw)
        except ValueError:
            return raw
        if INT64_MIN <= value <= INT64_MAX:
            return value
    return raw


def is_queryable_field(name: str) -> bool:
    """False for names a document store would read as operators or paths."""
    return bool(name) and not name.startswith("$") and "." not in name


def class_average(grades: Sequence[int]) -> int:
    """Integer average of `grades`, truncated toward zero.

    `grades` must not be empty.
    """
    total = sum(grades)
    quotient = abs(total) // len(grades)
    return quotient if total >= 0 else -quotient


def classify(grade: int, average: int) -> Optional[str]:
    """Return the rating band for `grade`, or None below the lowest band."""
    if grade >= average + A_OFFSET:
        return "A"
    if average - B_OFFSET <= grade < average + A_OFFSET:
        return "B"
    if average - C_OFFSET <= grade < average - B_OFFSET:
        return "C"
    return None


@dataclass
class NormalizationResult:
    average: int
    updated: Dict[str, str] = field(default_factory=dict)
    unrated: List[str] = field(default_factory=list)
    records: List[StudentRecord] = field(default_factory=list)


class StudentService:
    """Create, look up, list and remove student records."""
    def __init__(self, store: StudentStore):
        self.store = store

    def lookup(self, params: Iterable[Tuple[str, str]]) -> List[Tuple[str, Optional[StudentRecord]]]:
        """Look up one record per distinct query key.

        Keys are visited in order of first appearance and a repeated key
        uses its first value. Operator-like keys (`$where`, `a.b`) match
        nothing and never reach the store. Returns `(key, record_or_None)`
        pairs.
        """
        first_values: Dict[str, str] = {}
        for key, value in params:
            first_values.setdefault(key, value)
        results = []
        for key, value in first_values.items():
            if not is_queryable_field(key):
                logger.info("lookup key ignored: %r", key)
                results.append((key, None))
                continue
            record = self.store.find_one({key: coerce_filter_value(key, value)})
            results.append((key, record))
        return results

    def list_all(self) -> List[StudentRecord]:
        return self.store.find_all()

    def create(self, record: StudentRecord) -> bool:
        """Insert `record` unless its netid is already taken.

        Returns True when inserted and False for a duplicate. The lookup
        and the insert are separate store calls; a concurrent insert of
        the same netid is caught by the store's unique index.
        """
        if self.store.find_one({"netid": record.netid}) is not None:
            logger.info("duplicate netid rejected: %s", record.netid)
            return False
        try:
            self.store.insert(record)
        except DuplicateStudentError:
            return False
        logger.info("student added: %s", record.netid)
        return True

    def remove_up_to(self, raw_year: str) -> int:
        """Remove every record whose year is at or below the parsed threshold."""
        year = parse_year(raw_year)
        removed = self.store.remove_all({"year": {"$lte": year}})
        logger.info("removed %d student(s) with year <= %d", removed, year)
        return removed

    def import_records(self, items: List[Any]) -> Dict[str, Any]:
        """Create every valid item of a decoded JSON array.

        Returns a summary with `added` and `duplicates` counts and a list
        of per-item validation `errors`. Store errors abort the import.
        """
        added = 0
        duplicates = 0
        errors = []
        for idx, item in enumerate(items):
            try:
                record = StudentRecord.model_validate(item)
            except ValidationError as e:
                errors.append({'index': idx, 'error': str(e)})
                continue
            if self.create(record):
                added += 1
            else:
                duplicates += 1
        return {'added': added, 'duplicates': duplicates, 'errors': errors}


class RatingService:
    """Recompute every student's rating from the current class average."""
    def __init__(self, store: StudentStore):
        self.store = store

    def normalize(self) -> Optional[NormalizationResult]:
        """Run one normalization pass.

        Returns None when the store holds no students. Otherwise every
        record is classified against the average computed before any
        write, records below the lowest band keep their rating, and the
        result carries the post-update listing. The first failed update
        raises `PartialUpdateError`; updates applied before it stay.
        """
        students = self.store.find_all()
        if not students:
            logger.info("normalization skipped: no students")
            return None
        average = class_average([s.grade for s in students])
        result = NormalizationResult(average=average)
        planned = []
        for s in students:
            rating = classify(s.grade, average)
            if rating is None:
                result.unrated.append(s.netid)
            else:
                planned.append((s.netid, rating))
        for netid, rating in planned:
            applied = len(result.updated)
            try:
                matched = self.store.update_one({"netid": netid}, {"rating": rating})
            except StoreError as exc:
                logger.error("rating update failed for %s after %d updates: %s", netid, applied, exc)
                raise PartialUpdateError(applied, len(planned), str(exc)) from exc
            if not matched:
                logger.error("rating update failed for %s after %d updates: record vanished", netid, applied)
                raise PartialUpdateError(applied, len(planned), f"student {netid!r} no longer exists")
            result.updated[netid] = rating
        logger.info("normalized %d rating(s) against average %d", len(result.updated), average)
        result.records = self.store.find_all()
        return result
