"""Tenant lookup for the boundary authentication filter."""

import hmac
import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.tenant import Tenant

logger = logging.getLogger(__name__)


def get_tenant_by_api_key(db: Session, api_key: Optional[str]) -> Optional[Tenant]:
    """Resolve the tenant owning a shared-secret API key.

    Args:
        db: Database session
        api_key: Value of the X-API-Key header

    Returns:
        Tenant, or None if the key is missing or unknown
    """
    if not api_key or not api_key.strip():
        return None

    tenant = db.query(Tenant).filter(Tenant.api_key == api_key.strip()).first()
    if tenant is None or not hmac.compare_digest(tenant.api_key, api_key.strip()):
        logger.warning("Rejected unknown API key")
        return None
    return tenant
