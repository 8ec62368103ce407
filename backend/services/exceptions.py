"""Typed exception hierarchy for lot accounting errors.

Each class maps to one HTTP status so the API layer can translate
without inspecting messages.
"""


class LotError(Exception):
    """Base exception for all lot accounting errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LotError):
    """Malformed, missing or non-positive input. User-correctable."""

    status_code = 400


class InsufficientQuantityError(ValidationError):
    """A SELL asks for more shares than a lot has remaining."""

    def __init__(self, message: str, lot_id: str | None = None):
        self.lot_id = lot_id
        super().__init__(message)


class NotFoundError(LotError):
    """A referenced lot, transaction or account holder does not exist."""

    status_code = 404


class ConflictError(LotError):
    """The operation would break a lot invariant."""

    status_code = 409


class StoreError(LotError):
    """Unexpected store failure. Rolled back; details are logged, not exposed."""

    status_code = 500
