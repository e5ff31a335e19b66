"""
DynamoDB operations for the marker batch job.

This module provides the store functions the batch job needs: checking the
root table, streaming root ids, looking up child records by parent, writing
the marker attribute in batches and reading the notification recipients.
"""

import logging
import os
from typing import Any, Dict, Iterable, Iterator, List, Tuple

import boto3
from boto3.dynamodb.types import TypeDeserializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StoreUnreachable(Exception):
    """Raised when the root table cannot be reached. Aborts the run."""
    pass


class ChunkWriteFailure(Exception):
    """Raised when a chunk's child lookup fails. Recorded per chunk."""
    pass


# Configure DynamoDB client with timeouts to prevent infinite hangs
dynamodb_config = Config(
    retries={
        'max_attempts': 2,  # 2 attempts total (1 retry for throttling)
        'mode': 'standard'
    },
    connect_timeout=10,  # 10 seconds to establish connection
    read_timeout=30      # 30 seconds max for reading a page
)

region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-west-2'))

# Initialize DynamoDB client at module level (thread-safe, reused across invocations)
dynamodb_client = boto3.client('dynamodb', region_name=region, config=dynamodb_config)
logger.info(f"DynamoDB client initialized: region={region}, connect=10s, read=30s, max_attempts=2")

# Configuration from environment
ROOT_TABLE = os.environ.get('ROOT_TABLE', '')
CHILD_TABLE = os.environ.get('CHILD_TABLE', '')
CHILD_PARENT_INDEX = os.environ.get('CHILD_PARENT_INDEX', 'parent_id-index')
PARENT_KEY = os.environ.get('PARENT_KEY', 'parent_id')
MARKER_FIELD = os.environ.get('MARKER_FIELD', 'status')
RECIPIENTS_TABLE = os.environ.get('RECIPIENTS_TABLE', '')

# BatchExecuteStatement accepts at most 25 statements per call
MAX_STATEMENTS_PER_BATCH = 25

# An IN condition on a key attribute accepts at most 50 values
MAX_KEYS_PER_SELECT = 50

_deserializer = TypeDeserializer()


def check_root_table() -> None:
    """
    Verify the root table exists and is reachable.

    Raises:
        StoreUnreachable: If the table is not configured, missing, or the
            service cannot be reached
    """
    if not ROOT_TABLE:
        raise StoreUnreachable("ROOT_TABLE environment variable is not set")

    try:
        response = dynamodb_client.describe_table(TableName=ROOT_TABLE)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        logger.error(f"Root table not reachable: table={ROOT_TABLE}, error_code={error_code}")
        raise StoreUnreachable(f"Root table {ROOT_TABLE} not reachable: {error_code}") from e
    except BotoCoreError as e:
        logger.error(f"DynamoDB not reachable: {e}")
        raise StoreUnreachable(f"DynamoDB not reachable: {e}") from e

    status = response.get('Table', {}).get('TableStatus', 'UNKNOWN')
    logger.info(f"Root table {ROOT_TABLE} reachable (status={status})")


def scan_root_ids() -> Iterator[str]:
    """
    Stream the ids of every record in the root table.

    Only the key attribute is projected and pages are fetched lazily, so the
    full table is never held in memory.

    Yields:
        str: Root record id

    Raises:
        StoreUnreachable: If a scan page cannot be read
    """
    paginator = dynamodb_client.get_paginator('scan')
    pages = paginator.paginate(
        TableName=ROOT_TABLE,
        ProjectionExpression='#id',
        ExpressionAttributeNames={'#id': 'id'}
    )

    try:
        for page in pages:
            for item in page.get('Items', []):
                yield item['id']['S']
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to scan root table {ROOT_TABLE}: {e}")
        raise StoreUnreachable(f"Scan of {ROOT_TABLE} failed: {e}") from e


def query_children(parent_ids: Iterable[str]) -> Dict[str, List[str]]:
    """
    Look up the child records of a set of parents.

    Reads the parent-key index with one PartiQL SELECT per group of 50
    parents (the IN limit for key conditions), following NextToken until
    each group is exhausted.

    Args:
        parent_ids: Ids of the parent (root) records

    Returns:
        Dict mapping each parent id to the ids of its children. Parents
        without children map to an empty list.

    Raises:
        ChunkWriteFailure: If the lookup fails
    """
    parents = list(dict.fromkeys(parent_ids))
    children: Dict[str, List[str]] = {parent_id: [] for parent_id in parents}

    for start in range(0, len(parents), MAX_KEYS_PER_SELECT):
        group = parents[start:start + MAX_KEYS_PER_SELECT]
        placeholders = ', '.join('?' for _ in group)
        request = {
            'Statement': (
                f'SELECT "id", "{PARENT_KEY}" FROM "{CHILD_TABLE}"."{CHILD_PARENT_INDEX}" '
                f'WHERE "{PARENT_KEY}" IN [{placeholders}]'
            ),
            'Parameters': [{'S': parent_id} for parent_id in group]
        }

        try:
            while True:
                response = dynamodb_client.execute_statement(**request)
                for item in response.get('Items', []):
                    parent_id = item[PARENT_KEY]['S']
                    children.setdefault(parent_id, []).append(item['id']['S'])
                if 'NextToken' not in response:
                    break
                request['NextToken'] = response['NextToken']
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to query children of {len(group)} parent(s): {e}")
            raise ChunkWriteFailure(
                f"Child lookup failed for parents {', '.join(group)}: {e}"
            ) from e

    logger.info(
        f"Found {sum(len(ids) for ids in children.values())} child record(s) "
        f"for {len(parents)} parent(s)"
    )
    return children


def update_root_markers(ids: List[str], value: str) -> Tuple[List[str], List[str]]:
    """Write the marker on root records. Returns (succeeded, failed) ids."""
    return _batch_update_marker(ROOT_TABLE, ids, value)


def update_child_markers(ids: List[str], value: str) -> Tuple[List[str], List[str]]:
    """Write the marker on child records. Returns (succeeded, failed) ids."""
    return _batch_update_marker(CHILD_TABLE, ids, value)


def _batch_update_marker(
    table: str,
    ids: List[str],
    value: str
) -> Tuple[List[str], List[str]]:
    """
    Set the marker attribute on existing items with PartiQL UPDATE statements.

    The statements are sent in groups of 25. Writes are not atomic: one
    failed statement (or one failed call) does not undo the others.
    UPDATE never creates an item, so ids missing from the table fail with
    ConditionalCheckFailed instead of being inserted.

    Args:
        table: Table name
        ids: Item ids to update
        value: Marker value to write

    Returns:
        Tuple of (succeeded ids, failed ids)
    """
    succeeded: List[str] = []
    failed: List[str] = []
    statement = f'UPDATE "{table}" SET "{MARKER_FIELD}" = ? WHERE "id" = ?'

    for start in range(0, len(ids), MAX_STATEMENTS_PER_BATCH):
        group = ids[start:start + MAX_STATEMENTS_PER_BATCH]

        try:
            response = dynamodb_client.batch_execute_statement(
                Statements=[
                    {
                        'Statement': statement,
                        'Parameters': [{'S': value}, {'S': item_id}]
                    }
                    for item_id in group
                ]
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Batch update of {len(group)} item(s) in {table} failed: {e}")
            failed.extend(group)
            continue

        # Responses are returned in statement order
        for item_id, result in zip(group, response.get('Responses', [])):
            if 'Error' in result:
                error = result['Error']
                logger.warning(
                    f"Update failed: table={table}, id={item_id}, "
                    f"error_code={error.get('Code')}, error_message={error.get('Message')}"
                )
                failed.append(item_id)
            else:
                succeeded.append(item_id)

    logger.info(f"Updated {len(succeeded)}/{len(ids)} item(s) in {table}")
    return succeeded, failed


def scan_recipients() -> List[Dict[str, Any]]:
    """
    Read every record of the recipients table.

    Returns:
        List of plain dicts (DynamoDB types deserialized), e.g.
        {'id': 'u-1', 'email': 'a@example.com', 'active': True}

    Raises:
        ValueError: If RECIPIENTS_TABLE is not set
        ClientError: If the scan fails
    """
    if not RECIPIENTS_TABLE:
        raise ValueError("RECIPIENTS_TABLE environment variable is not set")

    records = []
    paginator = dynamodb_client.get_paginator('scan')
    for page in paginator.paginate(TableName=RECIPIENTS_TABLE):
        for item in page.get('Items', []):
            records.append({k: _deserializer.deserialize(v) for k, v in item.items()})

    logger.info(f"Loaded {len(records)} recipient record(s) from {RECIPIENTS_TABLE}")
    return records
