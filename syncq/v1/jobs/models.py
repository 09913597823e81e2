"""
Job queue persistence model.
"""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, BigInteger, CheckConstraint, Index, SmallInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from syncq.infra.database import Base


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobPriority(str, Enum):
    """Job priority levels, lowest first."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Integer stored in the priority column; higher is dequeued first."""
        return _PRIORITY_RANKS[self]

    @classmethod
    def from_rank(cls, rank: int) -> "JobPriority":
        return _PRIORITIES_BY_RANK[rank]


_PRIORITY_RANKS = {
    JobPriority.LOW: 0,
    JobPriority.NORMAL: 1,
    JobPriority.HIGH: 2,
    JobPriority.URGENT: 3,
}
_PRIORITIES_BY_RANK = {rank: priority for priority, rank in _PRIORITY_RANKS.items()}


class JobType(str, Enum):
    """Closed set of job kinds; each one has exactly one handler."""

    SYNC_ISSUE_TRACKER_PROJECT = "sync-issue-tracker-project"
    SYNC_WIKI_SPACE = "sync-wiki-space"
    REFRESH_ITEM = "refresh-item"
    INDEX_CONTENT = "index-content"
    CLEANUP_CACHE = "cleanup-cache"
    REFRESH_BOARDS = "refresh-boards"
    UPDATE_SEARCH_INDEX = "update-search-index"


class JobRecord(Base):
    """
    One row per job in the persistent queue.

    Timestamps are epoch milliseconds. Priority is stored as its rank so the
    dequeue query can order on it directly.
    """

    __tablename__ = "job_queue"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, comment="Job type")
    priority: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, comment="0=low .. 3=urgent"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Opaque executor parameters"
    )

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    scheduled_for: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Earliest eligible execution time"
    )
    started_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    retry_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=3)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=JobStatus.PENDING.value
    )

    duration_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="job_queue_status_check",
        ),
        CheckConstraint("priority BETWEEN 0 AND 3", name="job_queue_priority_check"),
        CheckConstraint("retry_count >= 0", name="job_queue_retry_count_check"),
        Index("idx_job_queue_status_scheduled", "status", "scheduled_for"),
        Index("idx_job_queue_type", "type"),
        Index("idx_job_queue_priority", "priority", "created_at"),
    )

