"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
from unittest.mock import Mock

import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('ROOT_TABLE', 'test-roots')
os.environ.setdefault('CHILD_TABLE', 'test-children')
os.environ.setdefault('RECIPIENTS_TABLE', 'test-users')
os.environ.setdefault('NOTIFY_FROM_ADDRESS', 'batch@example.com')
os.environ.setdefault('ENVIRONMENT', 'test')

from services import dynamodb as dynamodb_service  # noqa: E402
from services import ses as ses_service  # noqa: E402


class InMemoryStore:
    """
    Store double with the same functions as services.dynamodb.

    Roots and children are dicts of id -> attributes. Writes to ids listed in
    fail_ids fail the way a rejected PartiQL statement does; writes to ids
    that are not stored fail too (UPDATE never inserts).
    """

    def __init__(self, roots=None, children=None, recipients=None):
        self.roots = {root_id: {} for root_id in (roots or [])}
        self.children = {
            child_id: {'parent_id': parent_id}
            for child_id, parent_id in (children or {}).items()
        }
        self.recipients = list(recipients or [])
        self.reachable = True
        self.fail_ids = set()
        self.fail_child_lookup_for = set()
        self.root_writes = []
        self.child_writes = []
        self.scans = 0

    def check_root_table(self):
        if not self.reachable:
            raise dynamodb_service.StoreUnreachable("Root table test-roots not reachable: ResourceNotFoundException")

    def scan_root_ids(self):
        self.scans += 1
        for root_id in sorted(self.roots):
            yield root_id

    def query_children(self, parent_ids):
        result = {}
        for parent_id in parent_ids:
            if parent_id in self.fail_child_lookup_for:
                raise dynamodb_service.ChunkWriteFailure(f"Child lookup failed for parent {parent_id}")
            result[parent_id] = sorted(
                child_id for child_id, attrs in self.children.items()
                if attrs['parent_id'] == parent_id
            )
        return result

    def update_root_markers(self, ids, value):
        self.root_writes.append(list(ids))
        return self._update(self.roots, ids, value)

    def update_child_markers(self, ids, value):
        self.child_writes.append(list(ids))
        return self._update(self.children, ids, value)

    def scan_recipients(self):
        return list(self.recipients)

    def _update(self, table, ids, value):
        succeeded, failed = [], []
        for item_id in ids:
            if item_id in self.fail_ids or item_id not in table:
                failed.append(item_id)
            else:
                table[item_id]['status'] = value
                succeeded.append(item_id)
        return succeeded, failed


class FakeMailer:
    """Mail transport double recording every send."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to_addresses, subject, body):
        if self.fail:
            raise ses_service.NotificationDispatchFailure("SES not reachable: Could not connect to the endpoint URL")
        self.sent.append({'to': set(to_addresses), 'subject': subject, 'body': body})
        return ['message-1']


@pytest.fixture
def store():
    """Store with two roots (one with children, one without) and recipients."""
    return InMemoryStore(
        roots=['root-1', 'root-2'],
        children={'child-1': 'root-1', 'child-2': 'root-1'},
        recipients=[
            {'id': 'u-1', 'email': 'a@x.com', 'active': True},
            {'id': 'u-2', 'email': 'autoproc@x.com', 'active': True},
            {'id': 'u-3', 'email': 'b@x.com', 'active': False},
        ]
    )


@pytest.fixture
def make_store():
    """Factory for custom store layouts."""
    return InMemoryStore


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def failing_mailer():
    return FakeMailer(fail=True)


@pytest.fixture
def lambda_context():
    """Mock Lambda context with plenty of time remaining."""
    context = Mock()
    context.request_id = "test-request-id"
    context.function_name = "marker-batch-job-test"
    context.get_remaining_time_in_millis.return_value = 900000
    return context
