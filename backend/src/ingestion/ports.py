"""
Ingestion ports (interfaces) for processing strategies.

A strategy turns one ClassifiedDocument into work item(s). Strategies carry
no per-call state; everything a call needs travels in ProcessingContext.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from audit.service import AuditSink
from config import IngestionConfig
from domain.documents import ClassifiedDocument
from models.work_item import WorkItem
from work_queue.relations import RelationGraphStore
from work_queue.service import WorkQueueStore


@dataclass
class ProcessingContext:
    """Everything one strategy invocation needs.

    Attributes:
        correlation_id: Correlation identifier of the envelope (webhook GUID)
        type_hint: Declared webhook type
        plaintext: Decrypted body, stored verbatim on created work items
        document: Classified document
        config: Per-call ingestion configuration (tenants, marker)
        store: Work queue store bound to the ingestion transaction
        relations: Relation graph store bound to the same transaction
        audit: Audit sink for created work items
    """
    correlation_id: str
    type_hint: str
    plaintext: str
    document: ClassifiedDocument
    config: IngestionConfig
    store: WorkQueueStore
    relations: RelationGraphStore
    audit: AuditSink


@dataclass
class ProcessingResult:
    """Outcome of one strategy invocation."""
    strategy: str
    created_items: List[WorkItem] = field(default_factory=list)
    success: bool = True
    error_message: Optional[str] = None

    @property
    def created_item_ids(self) -> List[int]:
        return [item.id for item in self.created_items]


class ProcessingStrategy(ABC):
    """
    Port interface for document processing strategies.
    Product, order and the catch-all strategy implement this interface.
    """

    name: str = "strategy"

    @abstractmethod
    def can_handle(self, document: ClassifiedDocument) -> bool:
        """
        Check if this strategy applies to the classified document.

        Args:
            document: Result of DocumentClassifier.classify

        Returns:
            True if this strategy can process the document
        """
        pass

    @abstractmethod
    def process(self, context: ProcessingContext) -> ProcessingResult:
        """
        Create the work item(s) for one classified document.

        Creation is all-or-nothing: either every work item of the call is
        persisted or none is.

        Args:
            context: Processing context for this call

        Returns:
            ProcessingResult listing the created work items

        Raises:
            Exception: Any failure propagates to the caller unchanged
        """
        pass
