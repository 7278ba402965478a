"""
Verification module.

Short-lived, single-use codes gating the email/phone verified flags.

Public API:
- IVerificationService: Interface for issuing and checking codes
- VerificationService: Implementation backed by the local store
- VerificationToken / VerificationChannel / VerificationOutcome: Data models
- Verification exceptions: TokenNotFoundError, TokenExpiredError, TokenMismatchError
"""

from .interfaces import IVerificationService, IIdentityFlagUpdater
from .models import VerificationChannel, VerificationToken, VerificationOutcome
from .exceptions import (
    VerificationError,
    TokenNotFoundError,
    TokenExpiredError,
    TokenMismatchError,
)
from .repository import SupabaseProfileFlagRepository, InMemoryProfileFlagRepository
from .service import VerificationService

__all__ = [
    # Interfaces
    "IVerificationService",
    "IIdentityFlagUpdater",
    # Models
    "VerificationChannel",
    "VerificationToken",
    "VerificationOutcome",
    # Exceptions
    "VerificationError",
    "TokenNotFoundError",
    "TokenExpiredError",
    "TokenMismatchError",
    # Repositories
    "SupabaseProfileFlagRepository",
    "InMemoryProfileFlagRepository",
    # Service
    "VerificationService",
]
