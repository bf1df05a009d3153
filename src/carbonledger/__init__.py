"""Carbon Ledger - emission balances and carbon credit lifecycle."""

from .client import LedgerClient
from .daemon.errors import (
    ArithmeticOverflow,
    ErrorKind,
    InsufficientBalance,
    InvalidArgument,
    InvalidState,
    LedgerError,
    NotFound,
    Unauthorized,
)

__version__ = "1.0.0"

__all__ = [
    "LedgerClient",
    "LedgerError",
    "ErrorKind",
    "NotFound",
    "Unauthorized",
    "InvalidState",
    "InsufficientBalance",
    "InvalidArgument",
    "ArithmeticOverflow",
    "__version__",
]
