"""
Error taxonomy shared by the service and GraphQL layers.

Services raise these exceptions; resolvers let them propagate.  graphql-core
copies the ``extensions`` attribute of the original exception into the
response error, so clients can branch on ``errors[n].extensions.code``
without parsing messages.
"""


class ApiError(Exception):
    """Base class for errors that are reported to the caller verbatim."""

    code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def extensions(self) -> dict:
        return {"code": self.code}


class AuthenticationRequired(ApiError):
    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class InvalidCredential(ApiError):
    code = "INVALID_CREDENTIAL"
    default_message = "Invalid or expired token"


class NotFoundOrForbidden(ApiError):
    """
    Raised both when a record does not exist and when it exists but is not
    owned by the caller.  The two cases must stay indistinguishable.
    """

    code = "NOT_FOUND_OR_FORBIDDEN"
    default_message = "Not found or access denied"


class ValidationFailure(ApiError):
    code = "BAD_USER_INPUT"
    default_message = "Invalid input"
