"""
Domain errors raised by the service layer.
The API layer maps them to HTTP responses in main.py.
"""
from typing import Optional


class DomainError(Exception):
    """Base class for business rule violations."""

    status_code: int = 400
    error_code: str = "domain_error"

    def __init__(self, detail: str, *, entity: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.entity = entity


class NotFoundError(DomainError):
    """A unit, lease, request, tenant or account id did not resolve."""

    status_code = 404
    error_code = "not_found"

    @classmethod
    def for_entity(cls, entity: str, entity_id) -> "NotFoundError":
        return cls(f"{entity} not found with id: {entity_id}", entity=entity)


class ConflictError(DomainError):
    """The operation collides with existing state (overlap, duplicates, unavailable unit)."""

    status_code = 409
    error_code = "conflict"


class InvalidStateError(DomainError):
    """The entity is not in a state that allows the operation, or the input is inconsistent."""

    status_code = 400
    error_code = "invalid_state"
