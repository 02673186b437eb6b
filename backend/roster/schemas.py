"""Pydantic request/response schemas used by the API.

`StudentRecord` is the in-memory representation passed across the store
adapter boundary as well as the wire format of the HTTP endpoints.
"""

from typing import Any
from pydantic import BaseModel, ConfigDict, Field, model_validator

INT_FIELDS = ("year", "grade")
# SQLite and BSON integers are signed 64-bit
INT64_MIN = -2**63
INT64_MAX = 2**63 - 1


class StudentRecord(BaseModel):
    """A single student record.

    Field names on input are matched case-insensitively (`NetID` and
    `netid` are the same key); output always uses the lowercase keys in
    declaration order.
    """
    model_config = ConfigDict(extra="ignore")

    netid: str = Field(min_length=1)
    name: str = ""
    major: str = ""
    year: int = Field(default=0, ge=INT64_MIN, le=INT64_MAX)
    grade: int = Field(default=0, ge=INT64_MIN, le=INT64_MAX)
    rating: str = ""

    @model_validator(mode="before")
    @classmethod
    def _lowercase_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k.lower() if isinstance(k, str) else k: v for k, v in data.items()}
        return data


FIELDS = tuple(StudentRecord.model_fields)
