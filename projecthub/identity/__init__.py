"""
Azure Entra ID sign-in and directory helpers.

This package has no dependency on other projecthub packages (db, security, ...).
Use EntraSignInClient.exchange_code() on the sign-in redirect to get an
IdentityAssertion; GraphDirectory mirrors user administration to the tenant.
"""

from .client import EntraSignInClient
from .config import EntraConfig
from .context import IdentityAssertion
from .graph_client import GraphDirectory
from .token_cache import AppTokenCache
from .validator import IdentityError, IdTokenValidator

__all__ = [
    "AppTokenCache",
    "EntraConfig",
    "EntraSignInClient",
    "GraphDirectory",
    "IdentityAssertion",
    "IdentityError",
    "IdTokenValidator",
]
