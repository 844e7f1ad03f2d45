"""HTTP plumbing for API-call nodes: request client and auth resolution."""

from flowengine.http.auth import AuthResolver, OAuth2TokenCache, default_token_cache
from flowengine.http.client import APIClient, APIResponse

__all__ = [
    "APIClient",
    "APIResponse",
    "AuthResolver",
    "OAuth2TokenCache",
    "default_token_cache",
]
