"""Custom exceptions for ride management."""


class RideError(Exception):
    """Base class for ride failures. ``error_code`` is the wire code."""
    error_code = "ride_error"
    status_code = 400

    def __init__(self, message: str = "", data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class RideNotFoundError(RideError):
    """Raised when a ride cannot be found."""
    error_code = "ride_not_found"
    status_code = 404


class RideNotAvailableError(RideError):
    """Raised when a ride is no longer open for joining."""
    error_code = "ride_not_available"


class RideAlreadyJoinedError(RideError):
    """Raised when another rider already holds the seat."""
    error_code = "ride_already_joined"


class SelfJoinError(RideError):
    """Raised when a driver tries to join their own ride."""
    error_code = "self_join"


class NotAuthorizedError(RideError):
    """Raised when the user's role does not allow the operation."""
    error_code = "not_authorized"
    status_code = 403


class NotRideParticipantError(RideError):
    """Raised when the caller is neither the driver nor the rider."""
    error_code = "not_participant"
    status_code = 403


class InvalidTransitionError(RideError):
    """Raised when a status change is not an edge of the ride state machine."""
    error_code = "invalid_transition"


class RideNotCompletedError(RideError):
    """Raised when rating a ride that has not completed."""
    error_code = "ride_not_completed"


class AlreadyRatedError(RideError):
    """Raised when a participant rates the same ride twice."""
    error_code = "already_rated"


class InvalidRatingError(RideError):
    """Raised when a rating is not an integer from 1 to 5."""
    error_code = "invalid_rating"


class NoRatedParticipantError(RideError):
    """Raised when the driver rates a ride that never had a rider."""
    error_code = "no_rated_participant"
