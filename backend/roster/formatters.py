"""Plain-text rendering of service results.

Every student endpoint answers with `text/plain`; these helpers keep the
exact wording in one place.
"""

import json
from typing import Iterable, List, Optional, Tuple

from .schemas import StudentRecord

NOT_FOUND = "No user found\n"
ADDED = "Added user\n"
DUPLICATE = "User with the same netid already exists\n"
NO_STUDENTS = "No students in database.\n"


def format_record(record: StudentRecord) -> str:
    """Serialize a record as JSON indented by two spaces, lowercase keys."""
    return json.dumps(record.model_dump(), indent=2, ensure_ascii=False)


def format_lookup(results: Iterable[Tuple[str, Optional[StudentRecord]]]) -> str:
    parts = []
    for _key, record in results:
        parts.append(format_record(record) + "\n" if record is not None else NOT_FOUND)
    return "".join(parts)


def format_listing(records: List[StudentRecord]) -> str:
    return "".join(f"Student\n{format_record(r)}\n" for r in records)


def format_removed(count: int) -> str:
    return f"{count} student[s] removed!\n"


def format_normalization(average: int, records: List[StudentRecord]) -> str:
    return f"Average was {average}.\nUpdated information:\n" + format_listing(records)
