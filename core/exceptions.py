"""
core/exceptions.py -- Domain errors shared by auth/ and loans/.

Every error carries a machine-readable code and the HTTP status the API layer
answers with. Stores and services raise these; api/main.py renders them in the
common error envelope. Nothing here imports from FastAPI.
"""


class LoanDeskError(Exception):
    """Base class for recoverable domain errors."""

    status_code = 400
    code = "error"
    message = "Request could not be processed."

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidInput(LoanDeskError):
    """A required field is missing or a parameter is out of range."""

    status_code = 400
    code = "invalid_input"
    message = "Invalid input."


class UsernameTaken(LoanDeskError):
    status_code = 409
    code = "username_taken"
    message = "Username already exists."


class InvalidCredentials(LoanDeskError):
    """Login failed. Says nothing about which part was wrong."""

    status_code = 401
    code = "bad_credentials"
    message = "Invalid username or password."


class NotFound(LoanDeskError):
    status_code = 404
    code = "not_found"
    message = "Record not found."


class InvalidTransition(LoanDeskError):
    """The loan has already left SUBMITTED."""

    status_code = 409
    code = "invalid_transition"
    message = "Loan has already been decided."


class AdminGuardError(LoanDeskError):
    """An admin change would lock the system out of administration."""

    status_code = 400
    code = "admin_guard"
    message = "Change not allowed."
