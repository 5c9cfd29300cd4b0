"""Account lifecycle error taxonomy.

Every error carries a machine-readable code, a human-readable message and the
HTTP status the caller layer should answer with. Services raise these; the
exception handler in ``account_lifecycle.main`` renders them.
"""


class AccountError(Exception):
    """Base class for account lifecycle errors.

    Attributes:
        code: Machine-readable error code (e.g., "CONFLICT").
        message: Human-readable error message.
        status_code: HTTP status code to return.
    """

    def __init__(self, code: str, message: str, status_code: int = 500) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AccountError):
    """Missing or malformed input fields (400)."""

    def __init__(self, message: str) -> None:
        super().__init__(code="VALIDATION_ERROR", message=message, status_code=400)


class InvalidCredential(AccountError):
    """Missing, empty or wrong password.

    Login failures use 401; an empty credential on reset uses the default 400.
    """

    def __init__(self, message: str = "Invalid credential", status_code: int = 400) -> None:
        super().__init__(code="INVALID_CREDENTIAL", message=message, status_code=status_code)


class ConflictError(AccountError):
    """Duplicate username or email (409)."""

    def __init__(self, message: str = "Username or email already taken.") -> None:
        super().__init__(code="CONFLICT", message=message, status_code=409)


class InvalidOrExpiredToken(AccountError):
    """Token unknown, already consumed or past its expiry (400).

    The three cases share one message so callers cannot tell them apart.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_OR_EXPIRED_TOKEN",
            message="Invalid or expired token",
            status_code=400,
        )


class InvalidStateError(AccountError):
    """Operation not allowed in the account's current state."""

    def __init__(self, code: str, message: str, status_code: int = 409) -> None:
        super().__init__(code=code, message=message, status_code=status_code)


class DeliveryError(AccountError):
    """Notification transport failed (502).

    Never rolls back a token that was already persisted.
    """

    def __init__(self, message: str = "Email delivery failed") -> None:
        super().__init__(code="DELIVERY_FAILED", message=message, status_code=502)


class StoreUnavailable(AccountError):
    """The account store could not be reached (503). Not retried."""

    def __init__(self, message: str = "Account store unavailable") -> None:
        super().__init__(code="STORE_UNAVAILABLE", message=message, status_code=503)
