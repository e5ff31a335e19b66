"""
Data models for the marker batch job domain.

These type-safe data structures define clear contracts between components.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


@dataclass
class RootEntity:
    """
    Record of the iterated entity type.

    Attributes:
        id: Unique record identifier
        marker: Marker attribute (None until set in this run)
    """
    id: str
    marker: Optional[str] = None


@dataclass
class ChildEntity:
    """
    Record owned by exactly one RootEntity.

    Attributes:
        id: Unique record identifier
        parent_id: Id of the owning RootEntity
        marker: Marker attribute (None until set in this run)
    """
    id: str
    parent_id: str
    marker: Optional[str] = None


@dataclass
class Recipient:
    """
    Account that may receive the completion notification.

    Attributes:
        id: Account identifier
        email: Email address (may be blank or missing)
        active: Whether the account is active
    """
    id: str
    email: Optional[str]
    active: bool

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Recipient':
        """Build from a deserialized store record."""
        return cls(
            id=str(record.get('id', '')),
            email=record.get('email'),
            active=record.get('active') is True
        )


@dataclass
class ChunkResult:
    """
    Result of processing one chunk.

    Attributes:
        index: Zero-based chunk position in cursor order
        root_ids: Ids of the roots in the chunk
        updated_roots: Number of root records written
        updated_children: Number of child records written
        errors: Recorded write failures (empty on success)
    """
    index: int
    root_ids: List[str]
    updated_roots: int = 0
    updated_children: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return (
                f"ChunkResult(index={self.index}, roots={self.updated_roots}, "
                f"children={self.updated_children})"
            )
        return f"ChunkResult(index={self.index}, success=False, errors={self.errors})"


@dataclass
class RunResult:
    """
    Result of a full batch run.

    The run is successful once every chunk has been attempted. Chunk write
    failures and a failed notification are recorded here and never turn the
    run into a failure.

    Attributes:
        chunks: Per-chunk results in processing order
        notified: Addresses the completion notification was sent to
        notification_error: Dispatch failure description (if any)
        stopped_early: True if the run stopped pulling chunks before the
            cursor was exhausted
    """
    chunks: List[ChunkResult] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)
    notification_error: Optional[str] = None
    stopped_early: bool = False

    @property
    def updated_roots(self) -> int:
        return sum(c.updated_roots for c in self.chunks)

    @property
    def updated_children(self) -> int:
        return sum(c.updated_children for c in self.chunks)

    @property
    def failed_chunks(self) -> List[ChunkResult]:
        return [c for c in self.chunks if not c.success]

    @property
    def success(self) -> bool:
        """Always True - only an unreachable store fails a run, and that raises."""
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the Lambda response payload."""
        return {
            'success': self.success,
            'chunks': len(self.chunks),
            'updatedRoots': self.updated_roots,
            'updatedChildren': self.updated_children,
            'stoppedEarly': self.stopped_early,
            'failures': [
                {'chunk': c.index, 'errors': c.errors}
                for c in self.failed_chunks
            ],
            'notified': sorted(self.notified),
            'notificationError': self.notification_error,
        }
