"""
AWS service functions for the marker batch job.

This package contains the DynamoDB store operations and the SES mail
transport.
"""

__all__ = ['dynamodb', 'ses']
