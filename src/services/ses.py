"""
SES mail transport for the completion notification.

This module sends plain text email through Amazon SES.
"""

import logging
import os
from typing import Iterable, List

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class NotificationDispatchFailure(Exception):
    """Raised when the notification cannot be sent."""
    pass


# Configure SES client with timeouts
ses_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-west-2'))

# Module-level client (reused across invocations)
ses_client = boto3.client('ses', region_name=region, config=ses_config)

# Configuration from environment
FROM_ADDRESS = os.environ.get('NOTIFY_FROM_ADDRESS', '')

# SES rejects messages with more than 50 destinations
MAX_DESTINATIONS = 50


def send(to_addresses: Iterable[str], subject: str, body: str) -> List[str]:
    """
    Send a plain text email to a set of addresses.

    Recipients are sorted and split into groups of at most 50, one message
    per group.

    Args:
        to_addresses: Destination addresses
        subject: Subject line
        body: Plain text body

    Returns:
        List of SES message ids, one per message sent

    Raises:
        NotificationDispatchFailure: If the sender is not configured or SES
            rejects a message
    """
    if not FROM_ADDRESS:
        raise NotificationDispatchFailure("NOTIFY_FROM_ADDRESS environment variable is not set")

    addresses = sorted(to_addresses)
    message_ids = []

    for start in range(0, len(addresses), MAX_DESTINATIONS):
        group = addresses[start:start + MAX_DESTINATIONS]
        try:
            response = ses_client.send_email(
                Source=FROM_ADDRESS,
                Destination={'ToAddresses': group},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': {'Text': {'Data': body, 'Charset': 'UTF-8'}}
                }
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(
                f"Failed to send email: recipients={len(group)}, "
                f"error_code={error_code}, error_message={error_message}"
            )
            raise NotificationDispatchFailure(f"SES rejected message: {error_code}: {error_message}") from e
        except BotoCoreError as e:
            logger.error(f"SES not reachable: {e}")
            raise NotificationDispatchFailure(f"SES not reachable: {e}") from e

        message_ids.append(response['MessageId'])
        logger.info(f"Sent email to {len(group)} recipient(s): message_id={response['MessageId']}")

    return message_ids
