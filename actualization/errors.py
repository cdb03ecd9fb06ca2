"""
Exceptions raised across normalization, submission, and job polling.
"""

from __future__ import annotations


class ActualizationError(Exception):
    """Base exception for actualization failures."""


class ParseError(ActualizationError):
    """Raised when a workbook is malformed, empty, or has no usable rows."""


class SubmissionError(ActualizationError):
    """Raised when the job executor rejects a submitted batch."""


class PollError(ActualizationError):
    """Raised when one status poll fails; polling continues on the next tick."""


class DecodeError(ActualizationError):
    """Raised when a per-row error payload cannot be decoded."""


class ExecutorRequestError(ActualizationError):
    """Raised when the job executor cannot be reached after retries."""


class ProcessStateError(ActualizationError):
    """Raised when an operation is not allowed in the current process state."""


class JobFailed(ActualizationError):
    """
    Raised when the executor reports a non-success terminal status.
    """

    def __init__(self, message: str, *, status: str | None = None, status_detail: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.status_detail = status_detail
