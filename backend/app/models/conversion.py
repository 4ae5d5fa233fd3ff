"""Conversion request, record and workflow outcome models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.models.account import Decision


class FormatKey(str, Enum):
    """Supported document formats, in registry declaration order."""

    PDF = "pdf"
    DOCX = "docx"
    PPTX = "pptx"
    XLSX = "xlsx"


class ConversionState(str, Enum):
    """States of a single conversion request."""

    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    READY_TO_CONVERT = "ready_to_convert"
    CONVERTING = "converting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    """Result of a submit() call."""

    COMPLETED = "completed"
    REQUIRES_LOGIN = "requires_login"
    REQUIRES_UPGRADE = "requires_upgrade"
    CONVERSION_FAILED = "conversion_failed"
    PERSISTENCE_FAILED = "persistence_failed"


class FileDescriptor(BaseModel):
    """An uploaded file as seen by the workflow."""

    name: str
    size_bytes: int = Field(default=0, ge=0)
    detected_format: FormatKey | None = None


class ConversionRequest(BaseModel):
    """The file being converted and the chosen formats."""

    file: FileDescriptor
    source_format: FormatKey
    target_format: FormatKey | None = None


class ConvertedFile(BaseModel):
    """Output handle returned by the conversion collaborator."""

    filename: str
    format: FormatKey
    content: bytes = Field(default=b"", repr=False)


class ConversionRecord(BaseModel):
    """Append-only audit row, one per successful conversion."""

    principal_id: str
    original_filename: str
    original_format: FormatKey
    target_format: FormatKey
    file_size: int = Field(ge=0)
    timestamp: datetime


class SubmitOutcome(BaseModel):
    """What happened on submit(), for the presentation layer to surface."""

    kind: OutcomeKind
    state: ConversionState
    decision: Decision
    output_filename: str | None = None
    record: ConversionRecord | None = None
    conversion_count: int | None = None
    retryable: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED
