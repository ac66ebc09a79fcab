"""Token acquisition: token types and the provider contract."""

from .models import Declined, SignInRequired, TokenOutcome, TokenResponse
from .provider import MemoryTokenProvider, TokenProvider

__all__ = [
    "Declined",
    "MemoryTokenProvider",
    "SignInRequired",
    "TokenOutcome",
    "TokenProvider",
    "TokenResponse",
]
