"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def code(self) -> str:
        """Stable error name reported to clients."""
        return self.__class__.__name__


class ProvisioningError(AppException):
    """Base class for the failures surfaced by account and provisioning flows."""


class Unauthenticated(ProvisioningError):
    """Missing, invalid, expired or revoked credential."""

    def __init__(self, message: str = "User not authenticated"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class Forbidden(ProvisioningError):
    """Authenticated caller lacks the required role."""

    def __init__(self, message: str = "Only caregivers can create patient accounts"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationError(ProvisioningError):
    """Invalid input; ``field`` names the offending field."""

    def __init__(self, message: str = "Validation error", field: str | None = None):
        """Initialize with 400 status code."""
        self.field = field
        super().__init__(message, status_code=400)


class DuplicateEmail(ProvisioningError):
    """The email is already registered."""

    def __init__(self, message: str = "A user with this email address has already been registered"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class RoleAssignmentFailed(ProvisioningError):
    """Writing the role assignment for a new identity failed."""

    def __init__(self, message: str = "Failed to create patient role"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class RelationshipCreationFailed(ProvisioningError):
    """Writing the caregiver-patient relationship failed."""

    def __init__(self, message: str = "Failed to create caregiver-patient relationship"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class InternalError(ProvisioningError):
    """Unexpected backend failure or timeout."""

    def __init__(self, message: str = "Internal server error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


ERRORS_BY_CODE: dict[str, type[ProvisioningError]] = {
    cls.__name__: cls
    for cls in (
        Unauthenticated,
        Forbidden,
        ValidationError,
        DuplicateEmail,
        RoleAssignmentFailed,
        RelationshipCreationFailed,
        InternalError,
    )
}
