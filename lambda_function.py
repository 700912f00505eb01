"""AWS Lambda handler for SimplyOrg Events Sync."""
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from connector.event_fetcher import EventFetcher
from connector.exceptions import SyncError
from connector.session import AuthSession, SessionManager
from processor.event_normalizer import EventNormalizer
from processor.models import SyncResult
from storage.dynamodb_store import DynamoDBContentStore
from sync.event_syncer import EventSyncer
from sync.exceptions import SyncInProgressError
from sync.trainer_resolver import TrainerResolver

DEFAULT_BASE_URL = 'https://firm-admin.simplyorg-seminare.de'

logger = logging.getLogger(__name__)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def default_date_window() -> tuple[str, str]:
    """Return Jan 1 of the current year to Dec 31 of next year."""
    year = datetime.now(timezone.utc).year
    return f"{year}-01-01", f"{year + 1}-12-31"


def build_syncer() -> EventSyncer:
    """Wire the sync components from environment configuration."""
    session = AuthSession(
        base_url=os.environ.get('SIMPLYORG_BASE_URL', DEFAULT_BASE_URL),
        email=os.environ.get('SIMPLYORG_EMAIL', ''),
        password=os.environ.get('SIMPLYORG_PASSWORD', '')
    )
    session_manager = SessionManager(
        session,
        timeout=int(os.environ.get('AUTH_TIMEOUT_SECONDS', '30'))
    )
    fetcher = EventFetcher(
        session_manager,
        timeout=int(os.environ.get('FETCH_TIMEOUT_SECONDS', '60'))
    )
    normalizer = EventNormalizer(
        default_start_time=os.environ.get(
            'DEFAULT_START_TIME', EventNormalizer.DEFAULT_START_TIME
        ),
        default_end_time=os.environ.get(
            'DEFAULT_END_TIME', EventNormalizer.DEFAULT_END_TIME
        )
    )
    store = DynamoDBContentStore(
        table_name=os.environ.get('TABLE_NAME', 'simplyorg-content'),
        region_name=os.environ.get('AWS_REGION')
    )
    trainer_resolver = TrainerResolver(
        store,
        entity_type=os.environ.get('TRAINER_ENTITY_TYPE', 'trainer')
    )
    return EventSyncer(
        fetcher=fetcher,
        normalizer=normalizer,
        store=store,
        trainer_resolver=trainer_resolver,
        event_entity_type=os.environ.get('EVENT_ENTITY_TYPE', 'seminar')
    )


def run_sync(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[int] = None
) -> SyncResult:
    """
    Run one sync pass.

    Args:
        start_date: Start date in YYYY-MM-DD format (default: Jan 1 this year)
        end_date: End date in YYYY-MM-DD format (default: Dec 31 next year)
        limit: Optional cap on the number of events processed

    Returns:
        SyncResult of the pass

    Raises:
        SyncError: If authentication or fetching fails, or a pass is running
    """
    default_start, default_end = default_date_window()
    syncer = build_syncer()
    return syncer.sync_events(
        start_date or default_start,
        end_date or default_end,
        limit
    )


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for SimplyOrg Events Sync.

    A scheduled EventBridge invocation runs an uncapped pass; an event with
    "trigger": "manual" runs a pass capped at MANUAL_SYNC_LIMIT events.

    Args:
        event: EventBridge or manual invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    event = event or {}
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    setup_logging(log_level)

    trigger = event.get('trigger', 'scheduled')
    start_date = event.get('start_date')
    end_date = event.get('end_date')

    limit = event.get('limit')
    try:
        if limit is None and trigger == 'manual':
            limit = int(os.environ.get('MANUAL_SYNC_LIMIT', '10'))
        if limit is not None:
            limit = int(limit)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid limit {limit!r}: {e}")
        return _response(400, {
            'message': 'Invalid limit',
            'error': str(e),
            'error_type': type(e).__name__
        })

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={'trigger': trigger, 'limit': limit}
    )

    if trigger != 'manual' and not _env_flag('SYNC_ENABLED'):
        logger.info("Scheduled sync skipped: sync is disabled")
        return _response(200, {'message': 'Sync is disabled'})

    try:
        result = run_sync(start_date, end_date, limit)
    except SyncInProgressError as e:
        logger.warning(f"Sync skipped: {e}")
        return _response(409, {
            'message': 'Sync already in progress',
            'error': str(e),
            'error_type': type(e).__name__
        })
    except SyncError as e:
        duration = time.time() - start_time
        logger.error(
            f"Sync failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    duration = time.time() - start_time

    logger.info(
        "Lambda execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_created': result.created,
            'events_updated': result.updated,
            'events_skipped': result.skipped,
            'errors': result.errors
        }
    )
    for error in result.errors:
        logger.warning(f"Error: {error}")

    message = 'Sync completed successfully'
    if result.errors:
        message = 'Sync completed with errors'

    return _response(200, {
        'message': message,
        'statistics': {
            'records_fetched': result.fetched,
            'events_created': result.created,
            'events_updated': result.updated,
            'events_skipped': result.skipped,
            'trainers_created': result.trainers_created,
            'trainers_updated': result.trainers_updated,
            'excluded': result.excluded,
            'duration_seconds': round(duration, 2)
        },
        'errors': result.errors
    })
