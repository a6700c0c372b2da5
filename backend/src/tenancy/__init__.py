"""Tenancy module - tenant resolution at the HTTP boundary.

This module provides:
- Tenant lookup by shared-secret API key
- get_authenticated_tenant FastAPI dependency (X-API-Key header)
"""

from .service import get_tenant_by_api_key

__all__ = [
    "get_tenant_by_api_key",
]
