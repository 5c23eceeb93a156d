"""
MirrorPool Errors -- structured failures surfaced to callers.

Every error carries a ``kind`` so the request router can report it without
parsing messages. Errors are deterministic functions of input and corpus
state; none of them are retried.
"""

from typing import Any, Dict


class MirrorPoolError(Exception):
    """Base class for all engine errors."""

    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(MirrorPoolError, ValueError):
    """Missing or malformed input (empty text, unknown enum value, bad range)."""

    kind = "validation"


class StageLockedError(ValidationError):
    """A thought's stage was already assigned and cannot be rewritten."""

    kind = "stage_locked"


class InvalidReferenceError(MirrorPoolError):
    """An edge referenced a thought id unknown to the store."""

    kind = "invalid_reference"


class NotFoundError(MirrorPoolError):
    """A lookup by id found nothing.

    Ripple and evolution queries never raise this: an absent origin yields an
    empty, well-formed result instead.
    """

    kind = "not_found"
