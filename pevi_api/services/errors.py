"""Domain errors raised by the service layer.

The API's exception handlers translate these into HTTP responses;
``status_code`` is the status they map to.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Request is well-formed but semantically invalid."""

    status_code = 400


class NotFoundError(ServiceError):
    """Referenced record does not exist."""

    status_code = 404


class InvalidTransitionError(ServiceError):
    """Status change not permitted by the transition table."""

    status_code = 409

    def __init__(self, kind: str, current: str, target: str):
        super().__init__(f"{kind} cannot move from '{current}' to '{target}'")
        self.kind = kind
        self.current = current
        self.target = target


class ReleaseGateError(ServiceError):
    """Milestone is not yet cleared for release."""

    status_code = 409


class StepOrderError(ServiceError):
    """A release step was attempted before its predecessor was confirmed."""

    status_code = 409


class LeaseConflictError(ServiceError):
    """Another release for the same campaign is in flight."""

    status_code = 409

    def __init__(self, campaign_id: int, held_since=None):
        super().__init__(f"Release already in progress for campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.held_since = held_since


class EscrowCreationError(ServiceError):
    """Escrow backing could not be obtained; the owning record was rolled back."""

    status_code = 502

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.body = body


class EscrowConflictError(ServiceError):
    """A different contract id is already bound to the record."""

    status_code = 409


class EnvelopeMismatchError(ServiceError):
    """Submitted envelope is not the one prepared for the pending release step."""

    status_code = 409

    def __init__(self, milestone_id: int, step: str):
        super().__init__(
            f"Signed transaction for milestone {milestone_id} does not match the one prepared for {step}"
        )
        self.milestone_id = milestone_id
        self.step = step
