"""Sync orchestrator: fetch, normalize and persist SimplyOrg events."""
import logging
import threading
from typing import Any, Dict, List, Optional

from connector.event_fetcher import EventFetcher
from processor.event_normalizer import EventNormalizer
from processor.fingerprint import compute_event_fingerprint, has_changed
from processor.models import CanonicalEvent, SyncResult
from storage.dynamodb_store import DynamoDBContentStore, StoreError
from sync.exceptions import PersistenceError, SyncInProgressError
from sync.trainer_resolver import TrainerResolver

logger = logging.getLogger(__name__)

# Held for the duration of a pass; shared by scheduled and manual runs
_sync_lock = threading.Lock()

CREATED = 'created'
UPDATED = 'updated'
SKIPPED = 'skipped'


class EventSyncer:
    """Syncs SimplyOrg events into the content store."""

    def __init__(
        self,
        fetcher: EventFetcher,
        normalizer: EventNormalizer,
        store: DynamoDBContentStore,
        trainer_resolver: TrainerResolver,
        event_entity_type: str = 'seminar'
    ):
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.store = store
        self.trainer_resolver = trainer_resolver
        self.event_entity_type = event_entity_type

    def sync_events(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None
    ) -> SyncResult:
        """
        Run one sync pass.

        Authentication and fetch failures abort the pass. A failure to
        persist a single event is recorded in the result's errors and the
        remaining events are still processed.

        Args:
            start_date: Start date in YYYY-MM-DD format
            end_date: End date in YYYY-MM-DD format
            limit: Maximum number of grouped events to process

        Returns:
            SyncResult with created, updated and skipped counts

        Raises:
            SyncInProgressError: If another pass is running
            SyncError: If authentication or the fetch fails
        """
        if not _sync_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync pass is already running")

        try:
            return self._run_pass(start_date, end_date, limit)
        finally:
            _sync_lock.release()

    def _run_pass(
        self,
        start_date: Optional[str],
        end_date: Optional[str],
        limit: Optional[int]
    ) -> SyncResult:
        records = self.fetcher.fetch_records(start_date, end_date)
        events = self.normalizer.normalize(records)

        # Cap after grouping so an event's days are never split across runs
        if limit is not None and limit > 0:
            events = events[:limit]

        result = SyncResult(
            fetched=len(records),
            excluded=self.normalizer.stats.to_dict()
        )
        self.trainer_resolver.reset_counts()

        logger.info(f"Syncing {len(events)} events")

        for event in events:
            try:
                outcome = self.sync_single_event(event)
            except PersistenceError as e:
                logger.error(str(e))
                result.errors.append(str(e))
                continue

            if outcome == CREATED:
                result.created += 1
            elif outcome == UPDATED:
                result.updated += 1
            else:
                result.skipped += 1

        result.trainers_created = self.trainer_resolver.created
        result.trainers_updated = self.trainer_resolver.updated

        logger.info(
            f"Sync complete: {result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def sync_single_event(self, event: CanonicalEvent) -> str:
        """
        Create, update or skip one event.

        Returns:
            'created', 'updated' or 'skipped'

        Raises:
            PersistenceError: If the content store rejects a read or write
        """
        new_hash = compute_event_fingerprint(event)

        try:
            entity_id = self.store.find_entity_by_external_id(
                event.external_id, self.event_entity_type
            )

            if entity_id:
                if not has_changed(self.store.get_fingerprint(entity_id), new_hash):
                    return SKIPPED

                fields = self.build_event_fields(event)
                self.store.update_entity_title(entity_id, event.title)
                self._write_event(entity_id, fields, new_hash)
                logger.info(f"Updated event {entity_id}: {event.title}")
                return UPDATED

            # Resolve trainers before the draft exists, so a failure here
            # cannot leave an entity without its external_id
            fields = self.build_event_fields(event)
            entity_id = self.store.create_entity(self.event_entity_type, event.title)
            self._write_event(entity_id, fields, new_hash)
            return CREATED
        except StoreError as e:
            raise PersistenceError(event.title, e) from e

    def _write_event(self, entity_id: str, fields: Dict[str, Any], new_hash: str) -> None:
        self.store.set_structured_fields(entity_id, fields)
        self.store.set_fingerprint(entity_id, new_hash)

    def build_event_fields(self, event: CanonicalEvent) -> Dict[str, Any]:
        """Map a canonical event onto the stored field layout."""
        fields: Dict[str, Any] = {
            'external_id': event.external_id,
            'event_name': event.event_name,
        }

        if event.category:
            fields['seminar_type'] = event.category

        trainer_ids = []
        for ref in event.trainers:
            entity_id = self.trainer_resolver.find_or_create(ref)
            if entity_id not in trainer_ids:
                trainer_ids.append(entity_id)
        fields['trainer'] = trainer_ids

        if event.dates:
            fields['dates'] = self._build_date_rows(event)

        return fields

    @staticmethod
    def _build_date_rows(event: CanonicalEvent) -> List[Dict[str, Any]]:
        rows = []
        for entry in event.dates:
            until = ''
            # Only multi-day entries carry an end timestamp
            if entry.end_date != entry.start_date:
                until = f"{entry.end_date} {entry.end_time}"

            rows.append({
                'from': f"{entry.start_date} {entry.start_time}",
                'until': until,
                'day_number': entry.day_number,
                'module': entry.is_module,
                'module_name': event.event_name if entry.is_module else '',
            })
        return rows
