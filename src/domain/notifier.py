"""
Completion notification for a batch run.

Resolves the recipient set (active accounts with an address, automation
accounts excluded, deduplicated) and sends a single summary email. Failures
are logged and returned, never raised.
"""

import logging
import os
from typing import Iterable, Optional, Set

from .models import Recipient, RunResult
from services import dynamodb as dynamodb_service
from services import ses as ses_service

logger = logging.getLogger(__name__)

# DO NOT CHANGE: addresses starting with this prefix belong to automation accounts
EXCLUDE_PREFIX = os.environ.get('NOTIFY_EXCLUDE_PREFIX', 'autoproc')
SUBJECT = os.environ.get('NOTIFY_SUBJECT', 'Marker batch job completed')
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')

BODY_TEMPLATE = """\
The marker batch job has finished ({environment}).

Status: {status}
Root records updated: {updated_roots}
Child records updated: {updated_children}
Chunks processed: {chunk_count}
Chunks with failures: {failed_chunks}
Stopped before end of table: {stopped_early}

Failures:
{failures}
"""


def resolve_recipients(
    recipients: Iterable[Recipient],
    exclude_prefix: str = EXCLUDE_PREFIX
) -> Set[str]:
    """
    Resolve the notification address set.

    Keeps active recipients with a non-blank string address that does not
    start with exclude_prefix (case-sensitive). Duplicates collapse.
    Malformed addresses (numbers, sets) are skipped like missing ones.

    Example:
        >>> resolve_recipients([
        ...     Recipient('1', 'a@x.com', True),
        ...     Recipient('2', 'autoproc@x.com', True),
        ...     Recipient('3', 'b@x.com', False),
        ... ], 'autoproc')
        {'a@x.com'}
    """
    addresses = set()
    for recipient in recipients:
        if not recipient.active:
            continue
        if recipient.email is not None and not isinstance(recipient.email, str):
            logger.warning(
                f"Skipping recipient {recipient.id}: email is not a string "
                f"({type(recipient.email).__name__})"
            )
            continue
        email = (recipient.email or '').strip()
        if not email:
            continue
        if exclude_prefix and email.startswith(exclude_prefix):
            continue
        addresses.add(email)
    return addresses


class CompletionNotifier:
    """
    Sends the completion email once all chunks have been attempted.

    The store and mail transport are injectable so tests can substitute
    fakes; they default to the DynamoDB and SES services.
    """

    def __init__(self, store=None, mailer=None, exclude_prefix: str = None):
        self._store = store or dynamodb_service
        self._mailer = mailer or ses_service
        self._exclude_prefix = EXCLUDE_PREFIX if exclude_prefix is None else exclude_prefix

    def resolve(self) -> Set[str]:
        """Load recipients from the store and resolve the address set."""
        records = self._store.scan_recipients()
        recipients = [Recipient.from_record(r) for r in records]
        addresses = resolve_recipients(recipients, self._exclude_prefix)
        logger.info(f"Resolved {len(addresses)} recipient(s) from {len(recipients)} record(s)")
        return addresses

    def notify(self, addresses: Set[str], run_result: RunResult) -> Optional[str]:
        """
        Send the completion email to the resolved addresses.

        Args:
            addresses: Resolved recipient set
            run_result: Run summary rendered into the body

        Returns:
            None on success or skip, otherwise the failure description
        """
        if not addresses:
            logger.info("No recipients resolved, skipping notification")
            return None

        try:
            body = self._render_body(run_result)
            self._mailer.send(addresses, SUBJECT, body)
        except Exception as e:
            logger.error(f"NotificationDispatchFailure: {e}", exc_info=True)
            return str(e)

        run_result.notified = sorted(addresses)
        logger.info(f"Completion notification sent to {len(addresses)} recipient(s)")
        return None

    def on_complete(self, run_result: RunResult) -> None:
        """
        Resolve recipients and notify. Records any failure on run_result.
        """
        try:
            addresses = self.resolve()
        except Exception as e:
            logger.error(f"NotificationDispatchFailure: recipient lookup failed: {e}", exc_info=True)
            run_result.notification_error = str(e)
            return

        run_result.notification_error = self.notify(addresses, run_result)

    def _render_body(self, run_result: RunResult) -> str:
        """Build the plain-text summary from the run totals and failures."""
        failed = run_result.failed_chunks
        if failed:
            failures = "\n".join(
                f"- chunk {c.index}: {'; '.join(c.errors)}" for c in failed
            )
        else:
            failures = "None"

        # Values are substituted verbatim, braces in error text included
        return BODY_TEMPLATE.format(
            environment=ENVIRONMENT,
            status='COMPLETED WITH ERRORS' if failed else 'COMPLETED',
            updated_roots=run_result.updated_roots,
            updated_children=run_result.updated_children,
            chunk_count=len(run_result.chunks),
            failed_chunks=len(failed),
            stopped_early='yes' if run_result.stopped_early else 'no',
            failures=failures
        )
