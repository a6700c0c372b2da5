"""FastAPI router for inbound marketplace webhooks.

Boundary responsibilities only: authenticate the tenant (X-API-Key), verify
the envelope signature (X-Signature), hand the envelope to the ingestion
orchestrator and map its failures to HTTP status codes:

- bad API key or signature → 401
- DecryptionError → 400
- ClassificationError → 422
- StoreUnavailableError → 503 (app-level handler in main.py)
- anything else → 500 (sender should retry the whole notification)
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from config import Settings, get_settings
from database import SessionLocal
from domain.classification import ClassificationError
from infrastructure.encryption import (
    DecryptionError,
    decrypt_if_encrypted,
    verify_signature,
)
from ingestion.orchestrator import IngestionOrchestrator, RawEnvelope
from models.tenant import Tenant
from tenancy.dependencies import get_authenticated_tenant
from work_queue.retry import StoreUnavailableError
from .schemas import WebhookAcceptedResponse, WebhookPayload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "X-Signature"


def get_session_factory() -> Callable[[], Session]:
    """Session factory used for ingestion transactions."""
    return SessionLocal


def get_ingestion_orchestrator(
    tenant: Tenant = Depends(get_authenticated_tenant),
    settings: Settings = Depends(get_settings),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> IngestionOrchestrator:
    return IngestionOrchestrator.from_settings(
        settings,
        authenticated_tenant_id=tenant.id,
        session_factory=session_factory,
    )


def _verify_envelope_signature(
    payload: WebhookPayload,
    signature: Optional[str],
    settings: Settings,
) -> None:
    hmac_key = settings.WEBHOOK_HMAC_KEY
    if not hmac_key:
        # Signature checking disabled
        return
    if settings.SECURE_KEY:
        hmac_key = decrypt_if_encrypted(hmac_key, settings.SECURE_KEY)

    if not verify_signature(payload.webhook_data, signature, hmac_key):
        logger.warning(
            f"Rejected webhook with invalid signature (guid {payload.guid})",
            extra={"correlation_id": payload.guid}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing webhook signature",
        )


@router.post("/webhooks", response_model=WebhookAcceptedResponse)
def receive_webhook(
    payload: WebhookPayload,
    x_signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    settings: Settings = Depends(get_settings),
    orchestrator: IngestionOrchestrator = Depends(get_ingestion_orchestrator),
) -> WebhookAcceptedResponse:
    """Receive one encrypted webhook and queue its work item(s).

    Returns:
        WebhookAcceptedResponse: Created work item ids and classification

    Raises:
        HTTPException 401: Invalid signature (API key is checked by dependency)
        HTTPException 400: Envelope could not be decrypted
        HTTPException 422: Decrypted body is not a usable document
        StoreUnavailableError: Work queue store unavailable (503 via app handler)
        HTTPException 500: Unexpected ingestion failure
    """
    _verify_envelope_signature(payload, x_signature, settings)

    envelope = RawEnvelope(
        correlation_id=payload.guid,
        type_hint=payload.webhook_type,
        payload=payload.webhook_data,
    )
    logger.info(
        f"Received webhook {payload.guid} of type '{payload.webhook_type}'",
        extra={"correlation_id": payload.guid}
    )

    try:
        outcome = orchestrator.ingest(envelope)
    except DecryptionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook could not be decrypted: {e}",
        )
    except ClassificationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Webhook body could not be classified: {e}",
        )
    except StoreUnavailableError:
        raise
    except Exception:
        logger.error(
            f"Webhook {payload.guid} ingestion failed",
            exc_info=True,
            extra={"correlation_id": payload.guid}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook ingestion failed",
        )

    return WebhookAcceptedResponse(
        correlation_id=outcome.correlation_id,
        document_kind=outcome.document_kind,
        strategy=outcome.strategy,
        work_item_ids=outcome.work_item_ids,
        change_type=outcome.change_type,
    )
