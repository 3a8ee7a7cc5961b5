from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional

from .base import (
    COLLECTIONS,
    OAUTH_PROVIDERS,
    AuthEvent,
    AuthSession,
    DataClient,
    Identity,
    Order,
    Subscription,
)


def make_client(config: Mapping[str, Any], storage: Optional[MutableMapping[str, Any]] = None) -> DataClient:
    """Build the data client for one request from app config."""
    kind = config.get("BACKEND_KIND")
    if kind == "supabase":
        from .supabase import SupabaseDataClient

        return SupabaseDataClient(config["BACKEND_URL"], config["BACKEND_KEY"], storage=storage)

    from .sql import SqlDataClient

    return SqlDataClient(
        secret=config["BACKEND_KEY"],
        access_ttl=config.get("ACCESS_TOKEN_TTL", 3600),
        refresh_ttl=config.get("REFRESH_TOKEN_TTL", 60 * 60 * 24 * 30),
    )


__all__ = [
    "COLLECTIONS",
    "OAUTH_PROVIDERS",
    "AuthEvent",
    "AuthSession",
    "DataClient",
    "Identity",
    "Order",
    "Subscription",
    "make_client",
]
