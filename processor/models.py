"""Data models for event normalization and sync."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


@dataclass
class RawScheduleRecord:
    """One scheduled day of an event as returned by the calendar API."""
    external_event_id: str
    title: str
    event_name: str
    event_category_name: str
    trainer_name: str
    trainer_ids: Optional[str]
    event_startdate: str
    event_enddate: str
    schedule_date: str
    event_days: Optional[str]
    schedule_slot: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> 'RawScheduleRecord':
        """
        Build a record from one item of the API response body.

        Args:
            item: Decoded JSON object for a single schedule row

        Returns:
            RawScheduleRecord with missing values defaulted to empty strings
        """
        slots = item.get('schedule_slot') or []
        if isinstance(slots, dict):
            slots = [slots]
        slots = [slot for slot in slots if isinstance(slot, dict)]

        trainer_ids = None
        if slots and slots[0].get('trainer') is not None:
            trainer_ids = _text(slots[0]['trainer'])

        event_days = item.get('event_days')

        return cls(
            external_event_id=_text(item.get('event_id')),
            title=_text(item.get('title')),
            event_name=_text(item.get('event_name')),
            event_category_name=_text(item.get('event_category_name')),
            trainer_name=_text(item.get('trainer_name')),
            trainer_ids=trainer_ids,
            event_startdate=_text(item.get('event_startdate')),
            event_enddate=_text(item.get('event_enddate')),
            schedule_date=_text(item.get('schedule_date')),
            event_days=_text(event_days) if event_days is not None else None,
            schedule_slot=slots
        )


@dataclass
class TrainerRef:
    """Trainer named on an event, with its SimplyOrg id when known."""
    name: str
    external_id: Optional[int] = None


@dataclass
class CanonicalTrainer:
    """Trainer entity as projected into the content store."""
    name: str
    external_id: Optional[int] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None

    @classmethod
    def from_ref(cls, ref: TrainerRef) -> 'CanonicalTrainer':
        return cls(name=ref.name, external_id=ref.external_id)


@dataclass
class DateEntry:
    """A single calendar occurrence of an event."""
    start_date: str
    end_date: str
    start_time: str
    end_time: str
    day_number: int = 1
    is_module: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CanonicalEvent:
    """All schedule rows of one SimplyOrg event grouped together."""
    external_id: str
    title: str
    event_name: str
    category: str
    trainers: List[TrainerRef] = field(default_factory=list)
    dates: List[DateEntry] = field(default_factory=list)


@dataclass
class NormalizationStats:
    """Counters for records dropped during normalization."""
    records_seen: int = 0
    missing_required: int = 0
    room_rental: int = 0
    missing_trainer: int = 0
    events_emitted: int = 0

    @property
    def excluded(self) -> int:
        return self.missing_required + self.room_rental + self.missing_trainer

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class SyncResult:
    """Result of sync operation."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    fetched: int = 0
    excluded: Dict[str, int] = field(default_factory=dict)
    trainers_created: int = 0
    trainers_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
