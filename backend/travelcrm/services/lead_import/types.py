from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImportRequest:
    agency_id: str
    agency_code: str
    import_id: str
    records: tuple[dict[str, Any], ...]
    created_by: str | None = None


@dataclass(frozen=True)
class RecordError:
    index: int
    error: str

    def as_dict(self) -> dict[str, Any]:
        return {"index": self.index, "error": self.error}


@dataclass
class BatchInsertResult:
    """Normalized outcome of an unordered bulk insert. Indices refer to the submitted list."""

    inserted: list[Any] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)


@dataclass
class BatchOutcome:
    succeeded: list[Any] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @classmethod
    def all_failed(cls, size: int, message: str) -> "BatchOutcome":
        return cls(errors=[RecordError(index=i, error=message) for i in range(size)])
