from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class LeadImportPayload(BaseModel):
    import_id: Optional[str] = Field(default=None, alias="importId", max_length=64)
    leads: list[dict[str, Any]] = Field(default_factory=list)
    created_by: Optional[str] = Field(default=None, alias="createdBy")

    model_config = ConfigDict(populate_by_name=True)


class LeadImportAccepted(BaseModel):
    import_id: str
    total: int
    batches: int
    status: str = "pending"


class ImportErrorItem(BaseModel):
    index: int
    error: str


class ProgressSnapshot(BaseModel):
    total: int
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[ImportErrorItem] = Field(default_factory=list)


class ImportBatchMessage(BaseModel):
    """Body of one stream entry: a slice of an import plus its tenant context."""

    import_id: str
    agency_id: str
    agency_code: str
    batch_offset: int = Field(ge=0)
    created_by: Optional[str] = None
    leads: list[dict[str, Any]]
    progress: ProgressSnapshot
    created_at: datetime


class ImportProgress(BaseModel):
    import_id: str
    agency_id: Optional[str] = None
    status: Literal["pending", "processing", "completed", "failed"]
    total: int
    processed: int
    succeeded: int
    failed: int
    batches: int = 0
    errors: list[ImportErrorItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
