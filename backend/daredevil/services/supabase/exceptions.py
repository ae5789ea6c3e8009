class SupabaseAPIError(Exception):
    """Base exception for Supabase API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class SupabaseAuthError(SupabaseAPIError):
    """Missing, invalid or expired credentials."""

    pass


class SupabaseNotFoundError(SupabaseAPIError):
    """Resource not found."""

    pass


class SupabaseRejectedError(SupabaseAPIError):
    """The request reached the database but the operation was refused."""

    pass


class SupabaseUnavailableError(SupabaseAPIError):
    """Network failure, timeout, or server error after retries."""

    pass


class SupabaseDataError(SupabaseAPIError):
    """A row came back in a shape the client cannot parse."""

    pass
