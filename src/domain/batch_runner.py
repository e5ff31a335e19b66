"""
Batch run orchestration.

Opens the root cursor, feeds it to the ChunkProcessor in fixed-size chunks
(sequentially, in cursor order), then fires the CompletionNotifier exactly
once. Only StoreUnreachable from the Locator propagates out of run().
"""

import logging
from itertools import islice
from typing import Callable, Optional

from .chunk_processor import ChunkProcessor
from .locator import Locator
from .models import RootEntity, ChunkResult, RunResult
from .notifier import CompletionNotifier

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 200


class BatchRunner:
    """
    Drives one batch run: Locator -> ChunkProcessor per chunk -> Notifier.
    """

    def __init__(
        self,
        locator: Locator,
        processor: ChunkProcessor,
        notifier: CompletionNotifier,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError(f"chunk_size must be a positive integer, got: {chunk_size!r}")

        self._locator = locator
        self._processor = processor
        self._notifier = notifier
        self._chunk_size = chunk_size

    def run(self, should_stop: Optional[Callable[[], bool]] = None) -> RunResult:
        """
        Execute the run.

        Args:
            should_stop: Optional check consulted before pulling every chunk
                after the first; when it returns True no further chunks are
                pulled

        Returns:
            RunResult with per-chunk results and notification outcome

        Raises:
            StoreUnreachable: If the store cannot be reached
        """
        cursor = self._locator.open()
        logger.info(f"Starting run: chunk_size={self._chunk_size}")

        result = RunResult()
        ids = iter(cursor)
        index = 0

        while True:
            # Checked before pulling, so a stop never reads another scan page
            if index > 0 and should_stop is not None and should_stop():
                logger.warning(f"Stop requested, ending run after {index} chunk(s)")
                result.stopped_early = True
                break

            chunk_ids = list(islice(ids, self._chunk_size))
            if not chunk_ids:
                break

            chunk = [RootEntity(id=root_id) for root_id in chunk_ids]
            result.chunks.append(self._process_chunk(chunk, index))
            index += 1

        logger.info(
            f"All chunks attempted: chunks={len(result.chunks)}, "
            f"failed={len(result.failed_chunks)}"
        )

        self._notifier.on_complete(result)
        return result

    def _process_chunk(self, chunk, index: int) -> ChunkResult:
        try:
            return self._processor.process(chunk, index)
        except Exception as e:
            logger.error(f"Chunk {index} failed: {e}", exc_info=True)
            return ChunkResult(
                index=index,
                root_ids=[root.id for root in chunk],
                errors=[f"Unhandled error: {e}"]
            )
