"""Webhook ingestion pipeline: strategies, dispatcher and orchestrator"""

from .ports import ProcessingContext, ProcessingResult, ProcessingStrategy
from .dispatcher import STRATEGY_PRIORITY, NoStrategyError, StrategyDispatcher
from .orchestrator import (
    IngestionOrchestrator,
    IngestionOutcome,
    RawEnvelope,
    ingestion_config_from_settings,
)

__all__ = [
    "ProcessingContext",
    "ProcessingResult",
    "ProcessingStrategy",
    "STRATEGY_PRIORITY",
    "NoStrategyError",
    "StrategyDispatcher",
    "IngestionOrchestrator",
    "IngestionOutcome",
    "RawEnvelope",
    "ingestion_config_from_settings",
]
