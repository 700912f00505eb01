"""Content fingerprints for change detection."""
import hashlib
import json
from typing import Any, Dict, Optional

from processor.models import CanonicalEvent, CanonicalTrainer


def _digest(relevant_data: Dict[str, Any]) -> str:
    serialized = json.dumps(
        relevant_data,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False
    )
    return hashlib.sha256(serialized.encode('utf-8')).hexdigest()


def compute_event_fingerprint(event: CanonicalEvent) -> str:
    """
    Generate a fingerprint from the fields of an event that matter for sync.

    Only the id, title, trainers, category and dates are hashed, so edits
    to other fields in the content store survive a re-sync.

    Args:
        event: Normalized event

    Returns:
        SHA256 hex digest
    """
    trainers = sorted(
        (
            {'name': trainer.name, 'external_id': trainer.external_id}
            for trainer in event.trainers
        ),
        key=lambda t: (t['name'], t['external_id'] is not None, t['external_id'] or 0)
    )
    dates = sorted(
        (entry.to_dict() for entry in event.dates),
        key=lambda d: (
            d['start_date'], d['start_time'], d['end_date'],
            d['end_time'], d['day_number']
        )
    )
    relevant_data = {
        'external_id': event.external_id,
        'title': event.title,
        'trainers': trainers,
        'category': event.category,
        'dates': dates,
    }
    return _digest(relevant_data)


def compute_trainer_fingerprint(trainer: CanonicalTrainer) -> str:
    """Generate a fingerprint from a trainer's id, name and contact fields."""
    relevant_data = {
        'external_id': trainer.external_id,
        'name': trainer.name,
        'email': trainer.email or '',
        'phone': trainer.phone or '',
        'mobile': trainer.mobile or '',
    }
    return _digest(relevant_data)


def has_changed(stored_fingerprint: Optional[str], new_fingerprint: str) -> bool:
    """Return True if there is no stored fingerprint or it differs."""
    if not stored_fingerprint:
        return True
    return stored_fingerprint != new_fingerprint
