"""Replication domain models.

Dataclasses for the records the engine reads, pydantic models for the
batch requests it accepts and the summaries it returns.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.core.config import Settings
from app.replication.properties import as_utc, parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledDate:
    """A single date or a start/end range read from a template.

    Attributes:
        start: Start of the range (or the single date).
        end: End of the range, if the value is a range.
        start_has_time: Whether the source start carried a time component.
        end_has_time: Whether the source end carried a time component.
    """

    start: datetime
    end: datetime | None = None
    start_has_time: bool = False
    end_has_time: bool = False

    @property
    def is_range(self) -> bool:
        return self.end is not None

    @classmethod
    def from_property(cls, value: dict[str, Any] | None) -> "ScheduledDate | None":
        """Build from a Notion date property value, or None if it holds no date."""
        date = (value or {}).get("date") or {}
        start = date.get("start")
        if not start:
            return None
        end = date.get("end")
        return cls(
            start=parse_date(start),
            end=parse_date(end) if end else None,
            start_has_time="T" in start,
            end_has_time=bool(end) and "T" in end,
        )


@dataclass(frozen=True)
class TemplateRecord:
    """A template page as read at the start of a run. Never mutated.

    Attributes:
        id: Template page id.
        name: Display name, also the join key for dependency resolution.
        scheduled_date: Optional date or range.
        icon: Optional icon copied onto the replica.
        properties: The raw property map.
    """

    id: str
    name: str | None
    scheduled_date: ScheduledDate | None = None
    icon: dict[str, Any] | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Epic:
    """Grouping context for one batch.

    Attributes:
        id: Epic page id.
        name: Used as the title prefix of every replica in the batch.
        anchor_date: Optional target date carried by the epic page.
    """

    id: str
    name: str
    anchor_date: datetime | None = None


@dataclass(frozen=True)
class PropertyNames:
    """Property names the engine reads and writes.

    Attributes:
        date: Date property on templates and replicas.
        template_filter: Multi-select used only to select templates.
        title: Title property of the destination database.
        name_sources: Template properties consumed for title derivation.
        epic_relation: Relation from a replica to its epic.
        blocking: Destination relation for resolved blocking ids.
        blocked_by: Destination relation for resolved blocked-by ids.
        blocking_variants: Template properties read as "blocking".
        blocked_by_variants: Template properties read as "blocked by".
    """

    date: str = "Date"
    template_filter: str = "Workflow"
    title: str = "Title"
    name_sources: tuple[str, ...] = ("Name", "Title")
    epic_relation: str = "Epic"
    blocking: str = "Blocking"
    blocked_by: str = "Blocked by"
    blocking_variants: tuple[str, ...] = ("Blocking", "Blocks", "Blocking by")
    blocked_by_variants: tuple[str, ...] = ("Blocked by", "Blocked", "Blocked_by")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PropertyNames":
        return cls(
            date=settings.template_date_property,
            template_filter=settings.template_filter_property,
            title=settings.destination_title_property,
            epic_relation=settings.epic_relation_property,
            blocking=settings.blocking_property,
            blocked_by=settings.blocked_by_property,
        )

    @property
    def dependency_properties(self) -> frozenset[str]:
        """Every property name that carries a dependency relation."""
        return frozenset(
            (*self.blocking_variants, *self.blocked_by_variants, self.blocking, self.blocked_by)
        )


class NameToReplicaMap:
    """Run-scoped mapping from template name to replica id.

    Built during replication, then frozen before dependency resolution
    so every lookup sees the complete map. Duplicate names are
    last-write-wins and logged.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._frozen = False

    def register(self, template_name: str, replica_id: str) -> None:
        if self._frozen:
            raise RuntimeError("NameToReplicaMap is frozen; replication pass already finished")
        previous = self._entries.get(template_name)
        if previous is not None and previous != replica_id:
            logger.warning(
                f"Duplicate template name '{template_name}': replacing replica {previous} "
                f"with {replica_id}; dependency resolution for this name is ambiguous"
            )
        self._entries[template_name] = replica_id

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, template_name: str | None) -> str | None:
        if template_name is None:
            return None
        return self._entries.get(template_name)

    def __contains__(self, template_name: object) -> bool:
        return template_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def as_dict(self) -> dict[str, str]:
        return dict(self._entries)


# =============================================================================
# Requests and results
# =============================================================================


class BatchRequest(BaseModel):
    """One caller-specified group of templates tied to one epic."""

    epic_id: str | None = Field(default=None, description="Owning epic page id")
    template_filter: str | None = Field(
        default=None, description="Workflow option selecting the templates; None selects all"
    )
    explicit_date: datetime | None = Field(
        default=None, description="Caller-supplied reference date"
    )
    label: str | None = Field(default=None, description="Display label for logs and results")

    @field_validator("explicit_date", mode="before")
    @classmethod
    def parse_explicit_date(cls, v: Any) -> Any:
        """Accept ISO date or date-time strings; naive values are taken as UTC."""
        if isinstance(v, str):
            return parse_date(v) if v.strip() else None
        if isinstance(v, datetime):
            return as_utc(v)
        return v

    @property
    def display_name(self) -> str:
        return self.label or self.template_filter or self.epic_id or "unnamed batch"


class FailedTemplate(BaseModel):
    """A template that could not be replicated."""

    template_id: str
    error: str


class BatchResult(BaseModel):
    """Outcome of one batch within a run."""

    label: str
    epic_id: str | None = None
    epic_name: str | None = None
    success: bool = True
    copied_count: int = 0
    failed: list[FailedTemplate] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Batch-level failure, if any")


class RunSummary(BaseModel):
    """Structured partial-success summary of a replication run."""

    per_batch: list[BatchResult] = Field(default_factory=list)
    total_copied: int = 0
    dependencies_resolved: int = 0
    reference_date: datetime | None = None

    @property
    def successful_batches(self) -> int:
        return sum(1 for result in self.per_batch if result.success)
