"""Error and warning kinds raised or collected during an ingestion run."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    FORMAT = "format_error"
    PARSE = "parse_error"
    DATE_PARSE = "date_parse_warning"
    DUPLICATE_SKIP = "duplicate_skip"
    COMMIT = "commit_failure"
    UNSUPPORTED_FILE = "unsupported_file"


class IngestError(Exception):
    """Base for every fatal ingestion failure. Nothing is written when raised."""

    kind: ErrorKind = ErrorKind.PARSE

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class FormatError(IngestError):
    kind = ErrorKind.FORMAT


class ParseError(IngestError):
    kind = ErrorKind.PARSE


class CommitFailure(IngestError):
    kind = ErrorKind.COMMIT


class UnsupportedFileError(IngestError):
    kind = ErrorKind.UNSUPPORTED_FILE


class DateParseWarning(UserWarning):
    """A bill date matched no known pattern; the row proceeds with a fallback date."""

    kind = ErrorKind.DATE_PARSE

    def __init__(self, value: str, row: int | None = None) -> None:
        where = f" (row {row})" if row is not None else ""
        super().__init__(f"Could not parse date {value!r}{where}; using current time")
        self.value = value
        self.row = row
