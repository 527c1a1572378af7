"""Reference date resolution.

Picks the single date every batch of a run is anchored to. Priority:

1. The caller-supplied date.
2. The date of a template whose name contains "target date".
3. The latest template date across all batches.

Returns None when no template in the run has a date; callers use the
current time in that case.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from app.replication.models import TemplateRecord
from app.replication.properties import as_utc

logger = logging.getLogger(__name__)

TARGET_DATE_MARKER = "target date"


def find_reference_date(
    templates: Iterable[TemplateRecord],
    explicit_date: datetime | None = None,
) -> datetime | None:
    """Resolve the run's reference date.

    Args:
        templates: Every template collected across all batches of the run.
        explicit_date: Optional caller-supplied date; always wins. A naive
            value is taken as UTC.

    Returns:
        The reference date, or None if nothing in the run is dated.
    """
    if explicit_date is not None:
        explicit_date = as_utc(explicit_date)
        logger.info(f"Using explicit target date as reference: {explicit_date.date().isoformat()}")
        return explicit_date

    templates = list(templates)
    if not templates:
        logger.info("No template pages found; no reference date")
        return None

    marker = next(
        (t for t in templates if t.name and TARGET_DATE_MARKER in t.name.lower()),
        None,
    )
    if marker is not None and marker.scheduled_date is not None:
        reference = marker.scheduled_date.start
        logger.info(
            f"Using target date page '{marker.name}' as reference: {reference.date().isoformat()}"
        )
        return reference

    dated = [t.scheduled_date.start for t in templates if t.scheduled_date is not None]
    if not dated:
        logger.info("No dates found in template pages; no reference date")
        return None

    reference = max(dated)
    logger.info(f"Using latest template date as reference: {reference.date().isoformat()}")
    return reference
