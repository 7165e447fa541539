"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class SlotConflictException(BadRequestException):
    """The doctor already holds an appointment overlapping the requested range."""

    def __init__(self, message: str = "Doctor already has an appointment in this time range"):
        super().__init__(message)


class DoctorUnavailableException(BadRequestException):
    """The requested range is outside the doctor's resolved availability."""

    def __init__(self, message: str = "Doctor is not available in this time range"):
        super().__init__(message)


class InsufficientFundsException(BadRequestException):
    """Wallet balance is below the amount to debit."""

    def __init__(self, message: str = "Insufficient wallet balance"):
        super().__init__(message)


class PaymentException(BadRequestException):
    """The wallet debit could not be committed."""

    def __init__(self, message: str = "Payment could not be completed"):
        super().__init__(message)


class ConflictingAppointmentsException(BadRequestException):
    """Live appointments would be orphaned by a schedule change."""

    def __init__(self, message: str = "Conflicting appointments exist"):
        super().__init__(message)


class ScheduleOverlapException(BadRequestException):
    """A schedule or override row overlaps another row of the same doctor and day."""

    def __init__(self, message: str = "Schedule overlaps an existing entry"):
        super().__init__(message)
