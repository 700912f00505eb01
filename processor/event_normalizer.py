"""Normalizer that groups per-day schedule records into canonical events."""
import logging
import re
from typing import Dict, Iterable, List, Optional, Union

from processor.models import (
    CanonicalEvent,
    DateEntry,
    NormalizationStats,
    RawScheduleRecord,
    TrainerRef,
)

logger = logging.getLogger(__name__)

DAY_SUFFIX_PATTERN = re.compile(r' Tag - \d+$')


def clean_title(title: str) -> str:
    """Strip a trailing day-of-series marker such as ' Tag - 3'."""
    return DAY_SUFFIX_PATTERN.sub('', title)


def _parse_trainer_id(segment: str) -> Optional[int]:
    segment = segment.strip()
    if not segment:
        return None
    try:
        return int(segment)
    except ValueError:
        return None


def align_trainers(
    trainer_names: str,
    trainer_ids: Union[str, int, None]
) -> List[TrainerRef]:
    """
    Pair comma-separated trainer names with comma-separated trainer ids.

    Names are trimmed and empty segments dropped. Ids are matched to names
    by position; an id segment that is empty or not numeric yields None,
    names past the end of the id list get no id and surplus ids are ignored.

    Args:
        trainer_names: e.g. "Jane Doe, John Roe"
        trainer_ids: e.g. "5,9", 5 or None

    Returns:
        List of TrainerRef in name order
    """
    names = [name.strip() for name in (trainer_names or '').split(',')]
    names = [name for name in names if name]

    if trainer_ids is None:
        ids: List[Optional[int]] = []
    else:
        ids = [_parse_trainer_id(part) for part in str(trainer_ids).split(',')]

    return [
        TrainerRef(name=name, external_id=ids[i] if i < len(ids) else None)
        for i, name in enumerate(names)
    ]


class EventNormalizer:
    """Groups raw schedule rows into CanonicalEvent objects."""

    DEFAULT_START_TIME = '09:00:00'
    DEFAULT_END_TIME = '16:00:00'
    ROOM_RENTAL_CATEGORY = 'Einmietung'
    TRAINING_COURSE_CATEGORY = 'Lehrgang'

    def __init__(
        self,
        default_start_time: str = DEFAULT_START_TIME,
        default_end_time: str = DEFAULT_END_TIME,
        room_rental_category: str = ROOM_RENTAL_CATEGORY,
        training_course_category: str = TRAINING_COURSE_CATEGORY
    ):
        self.default_start_time = default_start_time
        self.default_end_time = default_end_time
        self.room_rental_category = room_rental_category
        self.training_course_category = training_course_category
        self.stats = NormalizationStats()

    def normalize(self, records: Iterable[RawScheduleRecord]) -> List[CanonicalEvent]:
        """
        Filter, clean and group raw records.

        Records are grouped by their SimplyOrg event id. Each group's dates
        are sorted ascending by start date; groups are returned in the order
        their id was first seen. Dropped records are counted in self.stats.

        Args:
            records: Raw schedule records from the fetcher

        Returns:
            List of CanonicalEvent objects
        """
        self.stats = NormalizationStats()
        groups: Dict[str, CanonicalEvent] = {}

        for record in records:
            self.stats.records_seen += 1

            if not self._is_syncable(record):
                continue

            key = record.external_event_id
            event = groups.get(key)
            if event is None:
                event = CanonicalEvent(
                    external_id=key,
                    title=clean_title(record.title),
                    event_name=record.event_name,
                    category=record.event_category_name,
                    trainers=align_trainers(record.trainer_name, record.trainer_ids)
                )
                groups[key] = event

            event.dates.append(self._build_date_entry(record))

        for event in groups.values():
            # sorted() is stable, so same-day rows keep their arrival order
            event.dates = sorted(event.dates, key=lambda entry: entry.start_date)

        self.stats.events_emitted = len(groups)
        logger.info(
            f"Normalized {self.stats.records_seen} records into "
            f"{self.stats.events_emitted} events "
            f"({self.stats.excluded} excluded)"
        )
        return list(groups.values())

    def _is_syncable(self, record: RawScheduleRecord) -> bool:
        if not record.external_event_id or not record.title:
            self.stats.missing_required += 1
            logger.debug("Skipping record without event id or title")
            return False

        if record.event_category_name == self.room_rental_category:
            self.stats.room_rental += 1
            logger.debug(f"Skipping room rental '{record.title}'")
            return False

        if not record.trainer_name:
            self.stats.missing_trainer += 1
            logger.debug(f"Skipping '{record.title}' without trainer")
            return False

        return True

    def _build_date_entry(self, record: RawScheduleRecord) -> DateEntry:
        if record.schedule_date:
            start_date = end_date = record.schedule_date
        else:
            start_date = record.event_startdate
            end_date = record.event_enddate or start_date

        start_time = self.default_start_time
        end_time = self.default_end_time
        if record.schedule_slot:
            slot = record.schedule_slot[0]
            # Drop fractional seconds, e.g. "09:30:00.000000"
            if slot.get('start_time'):
                start_time = str(slot['start_time']).split('.', 1)[0]
            if slot.get('end_time'):
                end_time = str(slot['end_time']).split('.', 1)[0]

        return DateEntry(
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            day_number=self._parse_day_number(record.event_days),
            is_module=self._is_module(record)
        )

    def _is_module(self, record: RawScheduleRecord) -> bool:
        if record.event_category_name == self.training_course_category:
            return True
        return 'modul' in record.event_name.lower()

    @staticmethod
    def _parse_day_number(value: Optional[str]) -> int:
        if not value:
            return 1
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid day ordinal '{value}', defaulting to 1")
            return 1
