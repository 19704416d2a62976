from typing import Dict, Optional


class UnrecognizedSchemaError(ValueError):
    """Structured rubric/boundary JSON that is malformed or of an unknown shape."""


class EmptyLevelsError(ValueError):
    """A rubric criterion with no levels has no maximum score."""

    def __init__(self, criterion_id: str):
        super().__init__(f"Criterion {criterion_id!r} has no levels")
        self.criterion_id = criterion_id


class SnapshotValidationError(ValueError):
    """A record payload from the gateway or channel failed ingress validation."""


class GatewayError(Exception):
    """
    Failure of a Remote Call Gateway request.

    kind is one of: validation, auth, not_found, network, server, unknown.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        kind: str = "unknown",
        field_errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind
        self.field_errors = field_errors or {}
