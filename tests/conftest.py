"""Shared pytest fixtures."""
import os

import boto3
import pytest
from moto import mock_aws

BASE_URL = 'https://simplyorg.example.com/'
TABLE_NAME = 'test-simplyorg-content'

LANDING_HTML = """
<html>
    <head>
        <meta charset="utf-8">
        <meta name="csrf-token" content="meta-token-123">
    </head>
    <body><form method="post" action="/de/login"></form></body>
</html>
"""


@pytest.fixture
def aws_credentials():
    """Fake AWS credentials so boto3 never reaches a real account."""
    env_vars = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }
    original = {key: os.environ.get(key) for key in env_vars}
    os.environ.update(env_vars)
    yield env_vars
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def content_table(aws_credentials):
    """Create a mock DynamoDB content table."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'entity_id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'entity_id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        yield table


@pytest.fixture
def content_store(content_table):
    """DynamoDBContentStore bound to the mock table."""
    from storage.dynamodb_store import DynamoDBContentStore
    return DynamoDBContentStore(TABLE_NAME, region_name='us-east-1')


def make_api_item(
    event_id='100',
    title='Training Tag - 1',
    schedule_date='2025-01-10',
    trainer_name='Jane Doe',
    trainer='5',
    category='Seminar',
    event_name='Führungstraining',
    event_days=1,
    start_time='09:30:00.000000',
    end_time='17:00:00.000000'
):
    """Build one calendar item shaped like the SimplyOrg API body."""
    slot = {'trainer': trainer}
    if start_time is not None:
        slot['start_time'] = start_time
    if end_time is not None:
        slot['end_time'] = end_time

    return {
        'event_id': event_id,
        'title': title,
        'event_name': event_name,
        'event_category_name': category,
        'trainer_name': trainer_name,
        'event_startdate': '2025-01-10',
        'event_enddate': '2025-01-11',
        'schedule_date': schedule_date,
        'event_days': event_days,
        'schedule_slot': [slot],
    }
