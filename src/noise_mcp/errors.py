"""Error taxonomy for noise reading queries.

Two failure kinds reach callers:

- ``ValidationError``: the request is missing or has malformed parameters.
  Raised before any query is issued; callers map it to a client error.
- ``QueryFailure``: the store read failed (connectivity, timeout, bad query).
  No partial results are returned; callers map it to a server error.
"""

from __future__ import annotations


class NoiseQueryError(Exception):
    """Base class for errors surfaced by the query layer."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(NoiseQueryError):
    """Raised when request parameters are insufficient or malformed."""

    kind = "validation"


class InvalidRangeError(ValidationError):
    """Raised when a range selector cannot be resolved to concrete bounds."""

    pass


class QueryFailure(NoiseQueryError):
    """Raised when the backing store read fails."""

    kind = "query"
