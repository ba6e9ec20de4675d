"""Chassis lifecycle and yard tier allocation for dealer yards."""
from dealer_yard.application.use_cases import (
    ChassisLifecycleEngine,
    ReconciliationReporter,
    TierPreviewUseCase,
    YardContext,
)
from dealer_yard.domain.allocation import TierAllocationCalculator
from dealer_yard.infrastructure.repositories.store_repositories import LifecycleStoreAdapter
from dealer_yard.infrastructure.storage.json_store import JsonFileDocumentStore
from dealer_yard.infrastructure.storage.memory_store import InMemoryDocumentStore

__all__ = [
    "ChassisLifecycleEngine",
    "ReconciliationReporter",
    "TierPreviewUseCase",
    "YardContext",
    "TierAllocationCalculator",
    "LifecycleStoreAdapter",
    "JsonFileDocumentStore",
    "InMemoryDocumentStore",
]
