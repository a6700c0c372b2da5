"""Ingestion orchestrator - envelope in, work items out.

Pipeline per envelope:
    decrypt (Envelope Opener) → classify (DocumentClassifier)
    → dispatch (StrategyDispatcher) → WorkQueueStore / RelationGraphStore

Store work for one envelope runs in a single transaction (see
work_queue.retry.run_in_transaction): created work items, their relations and
their audit rows commit together, or the envelope leaves no trace in the
store. Transient store failures re-run the whole transaction.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from audit.service import (
    INGESTION_FAILED,
    AuditSink,
    CompositeAuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
)
from config import IngestionConfig, Settings
from database import SessionLocal
from domain.classification import ClassificationError, DocumentClassifier
from domain.documents import ClassifiedDocument
from infrastructure.encryption import (
    DecryptionError,
    decrypt_envelope,
    decrypt_if_encrypted,
)
from observability.metrics import (
    documents_classified_total,
    ingestion_duration_seconds,
    webhooks_received_total,
)
from observability.request_id import reset_correlation_id, set_correlation_id
from work_queue.relations import RelationGraphStore
from work_queue.retry import StoreUnavailableError, run_in_transaction
from work_queue.service import WorkQueueStore
from .dispatcher import StrategyDispatcher
from .ports import ProcessingContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawEnvelope:
    """One inbound notification before it is opened.

    Attributes:
        correlation_id: Opaque correlation identifier (webhook GUID)
        type_hint: Declared webhook type, e.g. "order.updated"
        payload: Base64 ciphertext (IV + AES-256-CBC)
    """
    correlation_id: str
    type_hint: str
    payload: str


@dataclass
class IngestionOutcome:
    """Summary of one successful ingestion."""
    correlation_id: str
    document_kind: str
    strategy: str
    work_item_ids: List[int] = field(default_factory=list)
    tenant_ids: List[int] = field(default_factory=list)
    change_type: Optional[str] = None


def ingestion_config_from_settings(
    settings: Settings,
    authenticated_tenant_id: Optional[int] = None,
) -> IngestionConfig:
    """Build the per-call IngestionConfig from application settings.

    The default tenant is DEFAULT_TENANT_ID when configured, else the tenant
    the boundary authenticated. With SECURE_KEY set, a stored encryption key
    that looks encrypted is opened first.

    Raises:
        ValueError: If no default tenant can be determined
    """
    default_tenant_id = settings.DEFAULT_TENANT_ID or authenticated_tenant_id
    if default_tenant_id is None:
        raise ValueError("No default tenant configured or authenticated")

    encryption_key = settings.WEBHOOK_ENCRYPTION_KEY
    if settings.SECURE_KEY:
        encryption_key = decrypt_if_encrypted(encryption_key, settings.SECURE_KEY)

    return IngestionConfig(
        encryption_key=encryption_key,
        default_tenant_id=default_tenant_id,
        secondary_tenant_id=settings.SECONDARY_TENANT_ID,
        marketplace_marker=settings.SECONDARY_TENANT_MARKETPLACE_MARKER,
        product_fanout=settings.PRODUCT_FANOUT_TO_SECONDARY,
    )


def default_audit_sink(db: Session) -> AuditSink:
    return CompositeAuditSink([DatabaseAuditSink(db), LoggingAuditSink()])


class IngestionOrchestrator:
    """Entry point used by the HTTP boundary and by tooling.

    Holds no per-call state; one instance can serve concurrent requests as
    long as session_factory hands out independent sessions.
    """

    def __init__(
        self,
        config: IngestionConfig,
        session_factory: Callable[[], Session] = SessionLocal,
        classifier: Optional[DocumentClassifier] = None,
        dispatcher: Optional[StrategyDispatcher] = None,
        audit_sink_factory: Callable[[Session], AuditSink] = default_audit_sink,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        retry_max_delay: float = 5.0,
        statement_timeout_ms: Optional[int] = None,
    ):
        self.config = config
        self.session_factory = session_factory
        self.classifier = classifier or DocumentClassifier()
        self.dispatcher = dispatcher or StrategyDispatcher()
        self.audit_sink_factory = audit_sink_factory
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.statement_timeout_ms = statement_timeout_ms
        self.failure_sink = LoggingAuditSink()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        authenticated_tenant_id: Optional[int] = None,
        **kwargs,
    ) -> "IngestionOrchestrator":
        return cls(
            config=ingestion_config_from_settings(settings, authenticated_tenant_id),
            max_retries=settings.STORE_MAX_RETRIES,
            retry_base_delay=settings.STORE_RETRY_BASE_DELAY_SECONDS,
            retry_max_delay=settings.STORE_RETRY_MAX_DELAY_SECONDS,
            statement_timeout_ms=settings.STORE_STATEMENT_TIMEOUT_MS,
            **kwargs,
        )

    def open_envelope(self, envelope: RawEnvelope) -> str:
        """Decrypt the envelope payload.

        Raises:
            DecryptionError: If the payload cannot be opened
        """
        return decrypt_envelope(envelope.payload, self.config.encryption_key)

    def ingest(self, envelope: RawEnvelope) -> IngestionOutcome:
        """Turn one envelope into durable work item(s).

        Raises:
            DecryptionError: Payload could not be opened
            ClassificationError: Body is not a usable JSON document
            NoStrategyError: No strategy accepted the document
            StoreUnavailableError: Store unreachable after bounded retries
        """
        token = set_correlation_id(envelope.correlation_id)
        start_time = time.time()
        try:
            plaintext = self.open_envelope(envelope)
            document = self.classifier.classify(plaintext, envelope.type_hint)
            documents_classified_total.labels(kind=document.kind.value).inc()

            outcome = run_in_transaction(
                self.session_factory,
                lambda db: self._process(db, envelope, plaintext, document),
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                max_delay=self.retry_max_delay,
                operation="ingest",
            )

            webhooks_received_total.labels(outcome="success").inc()
            logger.info(
                f"Ingested envelope as {outcome.document_kind}: "
                f"work items {outcome.work_item_ids}",
                extra={"strategy": outcome.strategy}
            )
            return outcome

        except DecryptionError as e:
            self._record_failure(envelope, "decryption_error", e)
            raise
        except ClassificationError as e:
            self._record_failure(envelope, "classification_error", e)
            raise
        except StoreUnavailableError as e:
            self._record_failure(envelope, "store_unavailable", e)
            raise
        except Exception as e:
            self._record_failure(envelope, "error", e)
            raise
        finally:
            ingestion_duration_seconds.observe(time.time() - start_time)
            reset_correlation_id(token)

    def _process(
        self,
        db: Session,
        envelope: RawEnvelope,
        plaintext: str,
        document: ClassifiedDocument,
    ) -> IngestionOutcome:
        context = ProcessingContext(
            correlation_id=envelope.correlation_id,
            type_hint=envelope.type_hint or "",
            plaintext=plaintext,
            document=document,
            config=self.config,
            store=WorkQueueStore(db, statement_timeout_ms=self.statement_timeout_ms),
            relations=RelationGraphStore(db),
            audit=self.audit_sink_factory(db),
        )
        result = self.dispatcher.dispatch(context)

        # Read ids while the session is open; instances expire on commit
        return IngestionOutcome(
            correlation_id=envelope.correlation_id,
            document_kind=document.kind.value,
            strategy=result.strategy,
            work_item_ids=result.created_item_ids,
            tenant_ids=[item.tenant_id for item in result.created_items],
            change_type=document.change_type,
        )

    def _record_failure(self, envelope: RawEnvelope, reason: str, error: Exception) -> None:
        webhooks_received_total.labels(outcome=reason).inc()
        self.failure_sink.record(
            INGESTION_FAILED,
            tenant_id=self.config.default_tenant_id,
            entity_type="envelope",
            correlation_id=envelope.correlation_id,
            metadata={
                "reason": reason,
                "type_hint": envelope.type_hint,
                "error": str(error),
            },
        )
