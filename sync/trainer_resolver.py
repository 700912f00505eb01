"""Resolves trainer references to trainer entities in the content store."""
import logging
from typing import Optional

from processor.fingerprint import compute_trainer_fingerprint, has_changed
from processor.models import CanonicalTrainer, TrainerRef
from storage.dynamodb_store import DynamoDBContentStore

logger = logging.getLogger(__name__)


class TrainerResolver:
    """Finds or creates trainer entities for the trainers named on events."""

    def __init__(self, store: DynamoDBContentStore, entity_type: str = 'trainer'):
        self.store = store
        self.entity_type = entity_type
        self.reset_counts()

    def reset_counts(self) -> None:
        self.created = 0
        self.updated = 0
        self.skipped = 0

    def find_or_create(self, ref: TrainerRef) -> str:
        """
        Resolve a trainer reference to an entity id.

        Looks up by SimplyOrg id first, then by exact name. A name match gets
        the SimplyOrg id written back so later lookups use the id. Two
        spellings of the same person therefore end up as two entities.

        Args:
            ref: Trainer name and optional SimplyOrg id

        Returns:
            entity_id of the trainer

        Raises:
            StoreError: If the content store lookup or write fails
        """
        trainer = CanonicalTrainer.from_ref(ref)

        entity_id = self._find_by_external_id(ref.external_id)
        if entity_id:
            self.update_trainer(entity_id, trainer)
            return entity_id

        entity_id = self.store.find_entity_by_title(ref.name, self.entity_type)
        if entity_id:
            logger.info(f"Matched trainer '{ref.name}' by name")
            # Without an id the reference adds nothing to back-fill
            if ref.external_id is None:
                self.skipped += 1
            else:
                self.update_trainer(entity_id, trainer)
            return entity_id

        return self._create_trainer(trainer)

    def update_trainer(self, entity_id: str, trainer: CanonicalTrainer) -> bool:
        """
        Update a trainer entity if its fingerprint changed.

        Returns:
            True if the entity was written, False if unchanged
        """
        new_hash = compute_trainer_fingerprint(trainer)
        if not has_changed(self.store.get_fingerprint(entity_id), new_hash):
            self.skipped += 1
            return False

        self.store.update_entity_title(entity_id, trainer.name)

        fields = {}
        if trainer.external_id is not None:
            fields['external_id'] = trainer.external_id
        if trainer.email is not None:
            fields['email'] = trainer.email
        if trainer.phone is not None:
            fields['phone'] = trainer.phone
        if trainer.mobile is not None:
            fields['mobile'] = trainer.mobile
        self.store.set_structured_fields(entity_id, fields)

        self.store.set_fingerprint(entity_id, new_hash)
        self.updated += 1
        logger.info(f"Updated trainer {entity_id}: {trainer.name}")
        return True

    def _find_by_external_id(self, external_id: Optional[int]) -> Optional[str]:
        if external_id is None:
            return None
        return self.store.find_entity_by_external_id(external_id, self.entity_type)

    def _create_trainer(self, trainer: CanonicalTrainer) -> str:
        entity_id = self.store.create_entity(self.entity_type, trainer.name)

        if trainer.external_id is not None:
            self.store.set_structured_fields(
                entity_id, {'external_id': trainer.external_id}
            )

        self.store.set_fingerprint(entity_id, compute_trainer_fingerprint(trainer))
        self.created += 1
        return entity_id
