"""
core/errors.py -- Domain error taxonomy for AccountHub.

Services raise these; api/main.py owns the single exception handler that turns
them into `{"error": <message>}` responses with the matching status code.
Messages are short and client-safe: they are sent verbatim.

Layer rule: no imports from api/, auth/, live/, or store/.
"""


class AccountError(Exception):
    """Base class for every error a request can legitimately fail with."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AccountError):
    """Missing or malformed required fields."""

    status_code = 400


class ConflictError(AccountError):
    """A unique key (email) is already taken."""

    status_code = 409


class AuthError(AccountError):
    """Credential mismatch. The message never says which factor failed."""

    status_code = 401


class NotFoundError(AccountError):
    status_code = 404


class ResetError(AccountError):
    """Password reset could not be completed."""

    status_code = 400


class NoRequestError(ResetError):
    def __init__(self, message: str = "no reset requested") -> None:
        super().__init__(message)


class ExpiredError(ResetError):
    def __init__(self, message: str = "token expired") -> None:
        super().__init__(message)


class MismatchError(ResetError):
    def __init__(self, message: str = "invalid token") -> None:
        super().__init__(message)


class ServerError(AccountError):
    """Unexpected internal failure. Details go to the log, not the client."""

    status_code = 500

    def __init__(self, message: str = "server error") -> None:
        super().__init__(message)
