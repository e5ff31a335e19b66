"""
Tests for the SES mail transport.
"""

import pytest
from unittest.mock import patch
from botocore.exceptions import ClientError, EndpointConnectionError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from services import ses


class TestSend:
    """Test sending the completion email."""

    @patch('services.ses.FROM_ADDRESS', 'batch@example.com')
    @patch('services.ses.ses_client')
    def test_send_success(self, mock_ses):
        mock_ses.send_email.return_value = {'MessageId': 'msg-1'}

        result = ses.send({'b@x.com', 'a@x.com'}, 'Done', 'Body text')

        assert result == ['msg-1']
        mock_ses.send_email.assert_called_once_with(
            Source='batch@example.com',
            Destination={'ToAddresses': ['a@x.com', 'b@x.com']},
            Message={
                'Subject': {'Data': 'Done', 'Charset': 'UTF-8'},
                'Body': {'Text': {'Data': 'Body text', 'Charset': 'UTF-8'}}
            }
        )

    @patch('services.ses.FROM_ADDRESS', 'batch@example.com')
    @patch('services.ses.ses_client')
    def test_splits_large_recipient_sets(self, mock_ses):
        mock_ses.send_email.side_effect = [{'MessageId': 'm1'}, {'MessageId': 'm2'}]
        addresses = {f'user{i:03d}@x.com' for i in range(75)}

        result = ses.send(addresses, 'Done', 'Body')

        assert result == ['m1', 'm2']
        groups = [
            call[1]['Destination']['ToAddresses']
            for call in mock_ses.send_email.call_args_list
        ]
        assert [len(g) for g in groups] == [50, 25]
        assert set(groups[0]) | set(groups[1]) == addresses

    @patch('services.ses.FROM_ADDRESS', '')
    @patch('services.ses.ses_client')
    def test_missing_sender(self, mock_ses):
        with pytest.raises(ses.NotificationDispatchFailure, match="NOTIFY_FROM_ADDRESS"):
            ses.send({'a@x.com'}, 'Done', 'Body')

        mock_ses.send_email.assert_not_called()

    @patch('services.ses.FROM_ADDRESS', 'batch@example.com')
    @patch('services.ses.ses_client')
    def test_client_error(self, mock_ses):
        mock_ses.send_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified.'}},
            'SendEmail'
        )

        with pytest.raises(ses.NotificationDispatchFailure, match="MessageRejected"):
            ses.send({'a@x.com'}, 'Done', 'Body')

    @patch('services.ses.FROM_ADDRESS', 'batch@example.com')
    @patch('services.ses.ses_client')
    def test_transport_unreachable(self, mock_ses):
        mock_ses.send_email.side_effect = EndpointConnectionError(
            endpoint_url='https://email.us-west-2.amazonaws.com'
        )

        with pytest.raises(ses.NotificationDispatchFailure, match="not reachable"):
            ses.send({'a@x.com'}, 'Done', 'Body')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
