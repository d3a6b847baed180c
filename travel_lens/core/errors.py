from __future__ import annotations


class TravelLensError(Exception):
    """Base error. `message` is user-facing, `kind` is the stable machine code."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TravelLensError):
    """Missing or malformed input, raised before any side effect."""

    kind = "validation"


class NotFoundError(TravelLensError):
    kind = "not_found"


class ConflictError(TravelLensError):
    """Invalid state transition, e.g. approving a photo twice."""

    kind = "conflict"


class PermissionDeniedError(TravelLensError):
    kind = "forbidden"


class DependencyError(TravelLensError):
    """Media store, geocoder or album lister unavailable or erroring."""

    kind = "dependency"
