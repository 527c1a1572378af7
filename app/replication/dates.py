"""Date translation.

Each batch is shifted by one offset so its latest date lands on the run's
reference date while every other date keeps its distance from it.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from app.replication.models import ScheduledDate, TemplateRecord
from app.replication.properties import format_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateTranslation:
    """Uniform shift applied to every dated template of one batch."""

    offset: timedelta = timedelta(0)

    def shift(self, value: datetime) -> datetime:
        return value + self.offset


def calculate_date_translation(
    templates: Sequence[TemplateRecord],
    reference_date: datetime | None,
) -> DateTranslation:
    """Compute the batch offset: reference date minus the latest batch date.

    Args:
        templates: The batch's templates.
        reference_date: The run's reference date, if any.

    Returns:
        The translation; a zero offset when there is nothing to align.
    """
    if reference_date is None or not templates:
        return DateTranslation()

    dated = [t.scheduled_date.start for t in templates if t.scheduled_date is not None]
    if not dated:
        return DateTranslation()

    latest = max(dated)
    offset = reference_date - latest
    logger.info(
        f"Aligning latest template date {latest.date().isoformat()} with reference "
        f"{reference_date.date().isoformat()} (offset {offset})"
    )
    return DateTranslation(offset=offset)


def translate_date_property(
    value: dict[str, Any],
    scheduled: ScheduledDate | None,
    translation: DateTranslation,
    template_id: str = "",
) -> dict[str, Any]:
    """Return a translated copy of a date property value.

    Ranges keep their exact duration. A source range whose start is not
    before its end is left untouched; a translated range that would
    invert keeps its translated start and drops the end. Both cases only
    warn.

    Args:
        value: The template's date property value (``{"date": {...}}``).
        scheduled: The parsed template date, or None if the page is undated.
        translation: The batch translation.
        template_id: Used in warnings.

    Returns:
        A new property value; the input is not modified.
    """
    date = dict(value.get("date") or {})
    result = {**value, "date": date}

    if scheduled is None:
        return result

    if scheduled.is_range:
        if scheduled.start >= scheduled.end:
            logger.warning(
                f"Invalid date range skipped for template {template_id}: "
                f"{date.get('start')} - {date.get('end')}"
            )
            return result

        new_start = translation.shift(scheduled.start)
        new_end = translation.shift(scheduled.end)
        date["start"] = format_date(new_start, scheduled.start_has_time)

        # Guard for translations that do not keep the range length.
        if new_end <= new_start:
            logger.warning(
                f"Date translation for template {template_id} would invert the range; "
                f"keeping start {date['start']} without an end date"
            )
            date["end"] = None
        else:
            date["end"] = format_date(new_end, scheduled.end_has_time)
        return result

    date["start"] = format_date(translation.shift(scheduled.start), scheduled.start_has_time)
    return result
