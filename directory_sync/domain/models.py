"""
Domain models for Directory Sync.

`Record` is the canonical row of the local `users` table. `RemoteRecord` is
what the remote endpoint sends; it is validated and coerced before it may
become a `Record`, so a malformed item can never reach the store.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from directory_sync.utils.logging import get_logger

log = get_logger(__name__)

# Both backends key `users` on a signed 64-bit integer.
ID_MIN = -(2**63)
ID_MAX = 2**63 - 1


class Record(BaseModel):
    """
    Representation of a single row in the `users` table.
    """

    id: int = Field(..., ge=ID_MIN, le=ID_MAX, description="Primary key.")
    name: str = Field(..., description="Display name; primary sort key.")
    email: str = Field("", description="Searchable e-mail address.")
    phone: str = Field("", description="Phone number as sent by the remote.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }


class RemoteRecord(BaseModel):
    """
    A user object as produced by the remote endpoint.

    Extra keys (username, address, company, ...) are ignored. `email` and
    `phone` may be missing or null and are coerced to empty strings; `name`
    must be a non-blank string, and `id` must fit the 64-bit key column.
    """

    id: int = Field(..., ge=ID_MIN, le=ID_MAX)
    name: str = Field(..., min_length=1)
    email: str = ""
    phone: str = ""

    model_config = {
        "extra": "ignore",
        "str_strip_whitespace": True,
    }

    @field_validator("email", "phone", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_record(self) -> Record:
        return Record(id=self.id, name=self.name, email=self.email, phone=self.phone)


def parse_remote_records(items: Iterable[Any]) -> Tuple[List[RemoteRecord], List[int]]:
    """
    Validate raw payload items, skipping the malformed ones.

    Parameters
    ----------
    items : iterable
        Decoded JSON array elements.

    Returns
    -------
    tuple[list[RemoteRecord], list[int]]
        The valid records in payload order, and the indexes that were skipped.
    """
    records: List[RemoteRecord] = []
    skipped: List[int] = []
    for index, item in enumerate(items):
        try:
            records.append(RemoteRecord.model_validate(item))
        except ValidationError as exc:
            skipped.append(index)
            log.warning(
                "[REMOTE ITEM SKIPPED] malformed record",
                extra={"index": index, "errors": exc.error_count()},
            )
    return records, skipped


__all__ = ["Record", "RemoteRecord", "parse_remote_records"]
