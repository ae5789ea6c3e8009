from .client import SupabaseClient
from .config import SupabaseConfig
from .exceptions import (
    SupabaseAPIError,
    SupabaseAuthError,
    SupabaseDataError,
    SupabaseNotFoundError,
    SupabaseRejectedError,
    SupabaseUnavailableError,
)

__all__ = [
    "SupabaseClient",
    "SupabaseConfig",
    "SupabaseAPIError",
    "SupabaseAuthError",
    "SupabaseDataError",
    "SupabaseNotFoundError",
    "SupabaseRejectedError",
    "SupabaseUnavailableError",
]
