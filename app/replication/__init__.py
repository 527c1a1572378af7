"""Template replication engine.

Copies workflow template pages into the stories database under a new
anchor date and rewires their dependencies to the new pages.
"""

from app.replication.models import (
    BatchRequest,
    BatchResult,
    Epic,
    FailedTemplate,
    NameToReplicaMap,
    PropertyNames,
    RunSummary,
    ScheduledDate,
    TemplateRecord,
)
from app.replication.orchestrator import BatchOrchestrator, RunPhase

__all__ = [
    "BatchOrchestrator",
    "BatchRequest",
    "BatchResult",
    "Epic",
    "FailedTemplate",
    "NameToReplicaMap",
    "PropertyNames",
    "RunPhase",
    "RunSummary",
    "ScheduledDate",
    "TemplateRecord",
]
