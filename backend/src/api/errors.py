class NotesAppError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConflictError(NotesAppError):
    """Unique value (email) already taken."""
    status_code = 400


class NotFoundError(NotesAppError):
    """
    Record absent or owned by another user. The two cases are never
    distinguished in the message.
    """
    status_code = 404


class InvalidCredentialsError(NotesAppError):
    status_code = 400

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class ConfigurationError(RuntimeError):
    """Required configuration missing or malformed at startup."""
