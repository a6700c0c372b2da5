"""FastAPI dependencies for tenant authentication.

Every webhook call carries the tenant's shared secret in the X-API-Key
header. Unknown or missing keys short-circuit with 401 before any ingestion
work starts.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from models.tenant import Tenant
from .service import get_tenant_by_api_key

API_KEY_HEADER = "X-API-Key"


def get_authenticated_tenant(
    x_api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
    db: Session = Depends(get_db),
) -> Tenant:
    """Resolve the calling tenant from the X-API-Key header.

    Raises:
        HTTPException 401: If the header is missing or the key is unknown

    Example:
        @router.post("/webhooks")
        def receive(tenant: Tenant = Depends(get_authenticated_tenant)):
            ...
    """
    tenant = get_tenant_by_api_key(db, x_api_key)
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return tenant
