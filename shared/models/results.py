from enum import Enum

from pydantic import BaseModel

from shared.models.errors import ErrorKind


class OperationStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class OperationResult(BaseModel):
    """Outcome of a boundary operation of the context vector service.

    Boundary operations never raise; callers inspect this value instead.

    Attributes:
        operation:   Name of the operation (e.g. "index_file").
        status:      ok, skipped or failed.
        error_kind:  Taxonomy entry for skipped / failed results, None on success
                     and on failures of an unexpected type.
        detail:      Human-readable reason for skipped / failed results.
        count:       Number of vectors written by the operation, where applicable.
    """

    operation: str
    status: OperationStatus
    error_kind: ErrorKind | None = None
    detail: str | None = None
    count: int = 0

    @property
    def is_ok(self) -> bool:
        return self.status == OperationStatus.OK

    @classmethod
    def ok(cls, operation: str, count: int = 0) -> "OperationResult":
        return cls(operation=operation, status=OperationStatus.OK, count=count)

    @classmethod
    def skipped(cls, operation: str, detail: str) -> "OperationResult":
        return cls(
            operation=operation,
            status=OperationStatus.SKIPPED,
            error_kind=ErrorKind.EXTRACTION_SKIPPED,
            detail=detail,
        )

    @classmethod
    def failed(cls, operation: str, error_kind: ErrorKind | None, detail: str) -> "OperationResult":
        return cls(
            operation=operation,
            status=OperationStatus.FAILED,
            error_kind=error_kind,
            detail=detail,
        )
