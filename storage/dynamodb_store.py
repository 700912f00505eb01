"""DynamoDB-backed content store for synced events and trainers."""
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A content store read or write failed."""


class DynamoDBContentStore:
    """Entity storage in a single DynamoDB table keyed by entity_id."""

    DRAFT_STATUS = 'draft'
    # Trashed entities are invisible to lookups
    ACTIVE_STATUSES = ['publish', 'draft', 'pending']
    FINGERPRINT_ATTRIBUTE = 'content_hash'

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: taken from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBContentStore for table: {table_name}")

    def find_entity_by_external_id(
        self,
        external_id: Any,
        entity_type: str
    ) -> Optional[str]:
        """
        Find an entity by its SimplyOrg id.

        Args:
            external_id: SimplyOrg id of the event or trainer
            entity_type: Entity type, e.g. 'seminar' or 'trainer'

        Returns:
            entity_id of the first match or None
        """
        condition = (
            Attr('entity_type').eq(entity_type)
            & Attr('external_id').eq(str(external_id))
            & Attr('status').is_in(self.ACTIVE_STATUSES)
        )
        items = self._scan(condition)
        return items[0]['entity_id'] if items else None

    def find_entity_by_title(self, title: str, entity_type: str) -> Optional[str]:
        """Find an entity by exact title match."""
        condition = (
            Attr('entity_type').eq(entity_type)
            & Attr('title').eq(title)
            & Attr('status').is_in(self.ACTIVE_STATUSES)
        )
        items = self._scan(condition)
        return items[0]['entity_id'] if items else None

    def create_entity(
        self,
        entity_type: str,
        title: str,
        status: str = DRAFT_STATUS
    ) -> str:
        """
        Create a new entity.

        Args:
            entity_type: Entity type
            title: Entity title
            status: Initial status (default: draft, pending review)

        Returns:
            The new entity_id
        """
        entity_id = str(uuid.uuid4())
        item = {
            'entity_id': entity_id,
            'entity_type': entity_type,
            'title': title,
            'status': status,
            'fields': {},
            'last_updated': int(time.time())
        }

        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating {entity_type} '{title}': {e}")
            raise StoreError(f"Failed to create {entity_type}: {e}") from e

        logger.info(f"Created {entity_type} {entity_id}: {title}")
        return entity_id

    def update_entity_title(self, entity_id: str, title: str) -> None:
        self._update(
            entity_id,
            'SET #title = :title, last_updated = :now',
            names={'#title': 'title'},
            values={':title': title}
        )

    def set_structured_fields(self, entity_id: str, field_map: Dict[str, Any]) -> None:
        """
        Set structured fields on an entity.

        Fields not in field_map are left untouched. An 'external_id' field
        is also stored as the top-level lookup attribute.

        Args:
            entity_id: Entity to update
            field_map: Field name to value
        """
        if not field_map:
            return

        assignments = ['last_updated = :now']
        names = {'#fields': 'fields'}
        values: Dict[str, Any] = {}

        for i, (name, value) in enumerate(field_map.items()):
            assignments.append(f'#fields.#fld{i} = :val{i}')
            names[f'#fld{i}'] = name
            values[f':val{i}'] = value

        if field_map.get('external_id') is not None:
            assignments.append('external_id = :ext_id')
            values[':ext_id'] = str(field_map['external_id'])

        self._update(
            entity_id,
            'SET ' + ', '.join(assignments),
            names=names,
            values=values
        )

    def get_fingerprint(self, entity_id: str) -> Optional[str]:
        item = self.get_entity(entity_id)
        if not item:
            return None
        return item.get(self.FINGERPRINT_ATTRIBUTE) or None

    def set_fingerprint(self, entity_id: str, fingerprint: str) -> None:
        self._update(
            entity_id,
            'SET #hash = :hash',
            names={'#hash': self.FINGERPRINT_ATTRIBUTE},
            values={':hash': fingerprint},
            touch=False
        )

    def get_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Return the raw stored item or None."""
        try:
            response = self.table.get_item(Key={'entity_id': entity_id})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading entity {entity_id}: {e}")
            raise StoreError(f"Failed to read entity {entity_id}: {e}") from e
        return response.get('Item')

    def _update(
        self,
        entity_id: str,
        expression: str,
        names: Dict[str, str],
        values: Dict[str, Any],
        touch: bool = True
    ) -> None:
        if touch:
            values = dict(values, **{':now': int(time.time())})

        try:
            self.table.update_item(
                Key={'entity_id': entity_id},
                UpdateExpression=expression,
                ConditionExpression=Attr('entity_id').exists(),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error updating entity {entity_id}: {e}")
            raise StoreError(f"Failed to update entity {entity_id}: {e}") from e

    def _scan(self, condition) -> List[Dict[str, Any]]:
        try:
            response = self.table.scan(FilterExpression=condition)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    FilterExpression=condition,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise StoreError(f"Failed to scan {self.table_name}: {e}") from e

        return items
