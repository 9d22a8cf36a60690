"""Domain errors raised by services and translated to HTTP by the routers."""


class JamspotError(Exception):
    """Base class for every error the services raise on purpose."""

    detail = "Request failed"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class BackendUnavailableError(JamspotError):
    detail = "Backend is unavailable, try again later"


# -- validation --

class ValidationError(JamspotError):
    detail = "Invalid request"


class DuplicateRequestError(ValidationError):
    detail = "You have already sent a request to this user"


class SelfRequestError(ValidationError):
    detail = "You cannot send a request to yourself"


class LocationRequiredError(ValidationError):
    detail = "Select a location before saving your profile"


class InvalidTransitionError(JamspotError):
    detail = "Request is no longer pending"


class PermissionDeniedError(JamspotError):
    detail = "Not allowed"


# -- not found --

class NotFoundError(JamspotError):
    detail = "Not found"


class RequestNotFoundError(NotFoundError):
    detail = "Connection request not found"


class ProfileNotFoundError(NotFoundError):
    detail = "Profile not found"


class ChatNotFoundError(NotFoundError):
    detail = "Chat not found"


# -- identity --

class AccountExistsError(JamspotError):
    detail = "An account with this email already exists. Please sign in instead or use a different email."


class AccountExistsWithDifferentCredentialError(JamspotError):
    detail = (
        "An account with this email already exists using a different sign-in method. "
        "Please sign in with your original method."
    )


class InvalidCredentialsError(JamspotError):
    detail = "Could not validate credentials"


_STATUS_BY_ERROR = (
    (BackendUnavailableError, 503),
    (RequestNotFoundError, 404),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (InvalidCredentialsError, 401),
    (DuplicateRequestError, 409),
    (AccountExistsError, 409),
    (AccountExistsWithDifferentCredentialError, 409),
    (InvalidTransitionError, 409),
    (ValidationError, 400),
)


def http_status_for(exc: JamspotError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500
