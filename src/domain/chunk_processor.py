"""
Chunk processing - core business logic.

For one chunk of root records:
1. Set the marker on every root
2. Look up all children of the chunk's roots in one batched read
3. Set the same marker on every child
4. Persist roots and children as two independent batched writes

Write failures are recorded on the ChunkResult. No exceptions propagate
out of process().
"""

import logging
import os
from typing import List, Sequence, Tuple

from .models import RootEntity, ChildEntity, ChunkResult
from services import dynamodb as dynamodb_service

logger = logging.getLogger(__name__)

MARKER_VALUE = os.environ.get('MARKER_VALUE', 'Processed')

# Total write attempts per chunk (1 = no retries)
CHUNK_MAX_ATTEMPTS = int(os.environ.get('CHUNK_MAX_ATTEMPTS', '1'))


class ChunkProcessor:
    """
    Applies the marker to a chunk of roots and cascades it to their children.
    """

    def __init__(self, store=None, marker: str = None, max_attempts: int = None):
        self._store = store or dynamodb_service
        self._marker = MARKER_VALUE if marker is None else marker
        if max_attempts is None:
            max_attempts = CHUNK_MAX_ATTEMPTS
        self._max_attempts = max(1, max_attempts)

    def process(self, chunk: Sequence[RootEntity], index: int = 0) -> ChunkResult:
        """
        Process one chunk.

        Args:
            chunk: Root records pulled from the cursor
            index: Chunk position in the run (for logging and results)

        Returns:
            ChunkResult with write counts and any recorded failures
        """
        result = ChunkResult(index=index, root_ids=[root.id for root in chunk])

        staged_roots: List[RootEntity] = []
        for root in chunk:
            root.marker = self._marker
            staged_roots.append(root)

        staged_children: List[ChildEntity] = []
        try:
            children_by_parent = self._store.query_children(result.root_ids)
        except dynamodb_service.ChunkWriteFailure as e:
            logger.error(f"Chunk {index}: child lookup failed: {e}")
            result.errors.append(str(e))
            children_by_parent = {}

        for parent_id, child_ids in children_by_parent.items():
            for child_id in child_ids:
                staged_children.append(
                    ChildEntity(id=child_id, parent_id=parent_id, marker=self._marker)
                )

        # Independent writes: a failure on one side does not skip the other
        if staged_roots:
            written, failed = self._write(
                self._store.update_root_markers, [r.id for r in staged_roots]
            )
            result.updated_roots = len(written)
            if failed:
                result.errors.append(f"{len(failed)} root write(s) failed: {', '.join(failed)}")

        if staged_children:
            written, failed = self._write(
                self._store.update_child_markers, [c.id for c in staged_children]
            )
            result.updated_children = len(written)
            if failed:
                result.errors.append(f"{len(failed)} child write(s) failed: {', '.join(failed)}")

        logger.info(
            f"Chunk {index}: roots={result.updated_roots}/{len(staged_roots)}, "
            f"children={result.updated_children}/{len(staged_children)}"
        )
        return result

    def _write(self, update, ids: List[str]) -> Tuple[List[str], List[str]]:
        """Run a batched marker write, retrying failed ids up to max_attempts."""
        written: List[str] = []
        pending = ids

        for attempt in range(1, self._max_attempts + 1):
            succeeded, pending = update(pending, self._marker)
            written.extend(succeeded)
            if not pending:
                break
            if attempt < self._max_attempts:
                logger.warning(f"Retrying {len(pending)} failed write(s) (attempt {attempt + 1})")

        return written, pending
