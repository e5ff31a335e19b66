"""
AWS Lambda handler for the scheduled marker batch job.

Thin orchestration layer that delegates to BatchRunner.
Policy: chunk write and notification failures are logged and reported in the
response. Only an unreachable store fails the invocation.
"""

import logging
import os
from typing import Dict, Any

from domain.batch_runner import BatchRunner, DEFAULT_CHUNK_SIZE
from domain.chunk_processor import ChunkProcessor
from domain.locator import Locator
from domain.notifier import CompletionNotifier
from services.dynamodb import StoreUnreachable

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

CHUNK_SIZE = int(os.environ.get('CHUNK_SIZE', DEFAULT_CHUNK_SIZE))

# Stop pulling chunks when less than this much invocation time remains
STOP_MARGIN_MS = int(os.environ.get('STOP_MARGIN_MS', '60000'))


def _resolve_chunk_size(event: Dict[str, Any]) -> int:
    """Accept an int or a string of digits; floats and bools are rejected."""
    value = event.get('chunkSize', CHUNK_SIZE)
    chunk_size = value
    if isinstance(value, str) and value.strip().isdecimal():
        chunk_size = int(value)
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
        raise ValueError(f"chunkSize must be a positive integer, got: {value!r}")
    return chunk_size


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run the marker batch job.

    Expected event format (all fields optional):
    {
        "chunkSize": 200
    }

    Args:
        event: Scheduler event
        context: Lambda context

    Returns:
        Dict with run summary (see RunResult.to_dict)

    Raises:
        StoreUnreachable: If the root table cannot be reached
        ValueError: If chunkSize is invalid
    """
    logger.info("=" * 70)
    logger.info("Marker Batch Job - Started")
    logger.info("=" * 70)

    event = event or {}
    chunk_size = _resolve_chunk_size(event)

    runner = BatchRunner(
        locator=Locator(),
        processor=ChunkProcessor(),
        notifier=CompletionNotifier(),
        chunk_size=chunk_size
    )

    def should_stop() -> bool:
        return context.get_remaining_time_in_millis() < STOP_MARGIN_MS

    try:
        result = runner.run(should_stop=should_stop)
    except StoreUnreachable as e:
        logger.error(f"Run aborted, store unreachable: {e}")
        raise

    # Log summary
    logger.info("=" * 70)
    logger.info(f"Batch run complete: {len(result.chunks)} chunk(s)")
    logger.info(f"  Roots updated: {result.updated_roots}")
    logger.info(f"  Children updated: {result.updated_children}")
    logger.info(f"  Failed chunks: {len(result.failed_chunks)}")
    if result.stopped_early:
        logger.warning("  Stopped early: invocation time running out")
    if result.notification_error:
        logger.warning(f"  Notification failed: {result.notification_error}")
    logger.info("=" * 70)

    return result.to_dict()
