"""Strategy dispatcher.

Selection walks STRATEGY_PRIORITY, a fixed sequence of document kinds, and
invokes the first strategy whose can_handle accepts the document. The
catch-all for unrecognized documents is always last.
"""

import logging
from typing import Dict, Optional, Tuple

from domain.documents import ClassifiedDocument, DocumentKind
from .ports import ProcessingContext, ProcessingResult, ProcessingStrategy
from .strategies import OrderStrategy, ProductStrategy, UnrecognizedStrategy

logger = logging.getLogger(__name__)

STRATEGY_PRIORITY: Tuple[DocumentKind, ...] = (
    DocumentKind.PRODUCT,
    DocumentKind.ORDER,
    DocumentKind.UNRECOGNIZED,
)


class NoStrategyError(Exception):
    """Raised when no strategy accepts a classified document."""
    pass


def default_strategies() -> Dict[DocumentKind, ProcessingStrategy]:
    return {
        DocumentKind.PRODUCT: ProductStrategy(),
        DocumentKind.ORDER: OrderStrategy(),
        DocumentKind.UNRECOGNIZED: UnrecognizedStrategy(),
    }


class StrategyDispatcher:
    """Selects exactly one strategy per classified document.

    Example:
        dispatcher = StrategyDispatcher()
        result = dispatcher.dispatch(context)
    """

    def __init__(self, strategies: Optional[Dict[DocumentKind, ProcessingStrategy]] = None):
        """Initialize dispatcher.

        Args:
            strategies: Strategy per document kind; defaults to the built-in set.
                Iteration order is always STRATEGY_PRIORITY, never the mapping's.
        """
        self.strategies = default_strategies() if strategies is None else dict(strategies)

    def select(self, document: ClassifiedDocument) -> ProcessingStrategy:
        """Return the first strategy in priority order that accepts the document.

        Raises:
            NoStrategyError: If no strategy accepts the document
        """
        for kind in STRATEGY_PRIORITY:
            strategy = self.strategies.get(kind)
            if strategy is not None and strategy.can_handle(document):
                return strategy

        raise NoStrategyError(
            f"No processing strategy accepts document kind {document.kind.value}"
        )

    def dispatch(self, context: ProcessingContext) -> ProcessingResult:
        try:
            strategy = self.select(context.document)
        except NoStrategyError:
            logger.error(
                "No processing strategy found",
                extra={"correlation_id": context.correlation_id}
            )
            raise

        logger.debug(
            f"Using strategy {strategy.name}",
            extra={"strategy": strategy.name, "correlation_id": context.correlation_id}
        )
        return strategy.process(context)
