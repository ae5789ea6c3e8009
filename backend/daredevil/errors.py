"""User-facing error taxonomy for bet and points operations.

Transport exceptions from the Supabase client are translated into these at the
service boundary; the bet controller turns them into notification messages.
"""

from daredevil.services.supabase import (
    SupabaseAPIError,
    SupabaseAuthError,
    SupabaseUnavailableError,
)

GENERIC_RETRY_MESSAGE = "Network error. Please check your connection and try again."


class BetError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = message


class ValidationError(BetError):
    """A local precondition failed; no remote call was made."""

    pass


class AuthError(BetError):
    """No usable session."""

    pass


class NotAuthenticated(AuthError):
    def __init__(self, message: str = "Please sign in to continue"):
        super().__init__(message)


class RemoteRejected(BetError):
    """The backend executed the call and refused the operation."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class TransportError(BetError):
    """The backend could not be reached."""

    def __init__(self, message: str = GENERIC_RETRY_MESSAGE):
        super().__init__(message)


class RemoteUnavailable(TransportError):
    pass


class AmbiguousPickError(ValidationError):
    """The creator's pick matches neither side of the match."""

    def __init__(self, match_id: str, pick_id: str):
        super().__init__(
            f"Pick {pick_id} does not belong to match {match_id}; "
            "cannot determine the opposing side"
        )
        self.match_id = match_id
        self.pick_id = pick_id


def translate_remote_error(error: SupabaseAPIError) -> BetError:
    if isinstance(error, SupabaseAuthError):
        return AuthError(f"Your session has expired. Please sign in again. ({error.message})")
    if isinstance(error, SupabaseUnavailableError):
        return RemoteUnavailable()
    return RemoteRejected(error.message, code=error.code)
