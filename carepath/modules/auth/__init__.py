"""
Authentication module.

Handles sign-up, sign-in, logout and reconciliation of the device's cached
auth flags with the remote identity backend.

Public API:
- IAuthSessionManager: Interface exposed to screens
- AuthSessionManager: Implementation
- IAuthGateway: The remote identity backend (Supabase or in-memory)
- INavigator: Router slice used by logout_and_redirect
- AuthUser / AuthSession / AuthResponse / AuthState: Data models
- Auth exceptions: RemoteAuthError, NotAuthenticatedError, NavigationError
"""

from .interfaces import IAuthSessionManager, IAuthGateway, INavigator
from .models import (
    AuthUser,
    AuthSession,
    AuthResponse,
    AuthState,
    JWTPayload,
    LocalAuthFlags,
    LogoutReport,
    RedirectOutcome,
    SignOutScope,
)
from .exceptions import RemoteAuthError, NotAuthenticatedError, NavigationError
from .gateway import SupabaseAuthGateway, InMemoryAuthGateway
from .service import AuthSessionManager

__all__ = [
    # Interfaces
    "IAuthSessionManager",
    "IAuthGateway",
    "INavigator",
    # Models
    "AuthUser",
    "AuthSession",
    "AuthResponse",
    "AuthState",
    "JWTPayload",
    "LocalAuthFlags",
    "LogoutReport",
    "RedirectOutcome",
    "SignOutScope",
    # Exceptions
    "RemoteAuthError",
    "NotAuthenticatedError",
    "NavigationError",
    # Gateways
    "SupabaseAuthGateway",
    "InMemoryAuthGateway",
    # Service
    "AuthSessionManager",
]
