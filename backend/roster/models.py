"""SQLModel data models.

This module defines the table backing the SQL store adapter. Only the
adapter touches these rows; everything above it works with
`schemas.StudentRecord`.
"""

from typing import Optional
from sqlmodel import SQLModel, Field


class Student(SQLModel, table=True):
    """A stored student row.

    Fields:
    - `netid`: unique identifier, enforced by a unique index
    - `rating`: derived letter rating, empty until classified
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    netid: str = Field(index=True, nullable=False, unique=True)
    name: str = ""
    major: str = ""
    year: int = Field(default=0, index=True)
    grade: int = 0
    rating: str = ""
