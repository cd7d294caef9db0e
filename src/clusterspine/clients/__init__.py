"""Production collaborators: management plane HTTP client, identity, catalog, audit."""

from clusterspine.clients.audit import LogAuditSink
from clusterspine.clients.catalog import ProductCatalog
from clusterspine.clients.identity import JwtIdentityProvider, load_token
from clusterspine.clients.shasta import ShastaClient

__all__ = [
    "JwtIdentityProvider",
    "LogAuditSink",
    "ProductCatalog",
    "ShastaClient",
    "load_token",
]
