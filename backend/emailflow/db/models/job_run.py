"""Pipeline run history - one row per priority send, contact sync or tag send."""
import json
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, Optional
from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, Index
from emailflow.db.base import Base


class JobStatus(str, PyEnum):
    """Lifecycle of a pipeline run."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobRun(Base):
    """A pipeline run with its outcome counters.

    Rows are created RUNNING and closed exactly once with `complete` or `fail`.
    """

    __tablename__ = "job_runs"

    run_id = Column(Integer, primary_key=True, autoincrement=True)
    pipeline_name = Column(String(100), nullable=False)  # priority_sender, contact_sync, tag_send
    triggered_by = Column(String(255), nullable=True)  # AuthContext.actor or "scheduler"
    status = Column(Enum(JobStatus), default=JobStatus.RUNNING, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    counters_json = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_job_run_pipeline_started', 'pipeline_name', 'started_at'),
        Index('idx_job_run_status', 'status'),
    )

    @classmethod
    def start(cls, pipeline_name: str, triggered_by: Optional[str] = None) -> "JobRun":
        return cls(
            pipeline_name=pipeline_name,
            triggered_by=triggered_by,
            status=JobStatus.RUNNING,
            started_at=datetime.utcnow()
        )

    @property
    def counters(self) -> Dict[str, Any]:
        return json.loads(self.counters_json) if self.counters_json else {}

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    def complete(self, counters: Dict[str, Any]) -> None:
        self._close(JobStatus.COMPLETED, counters)

    def fail(self, error: BaseException, counters: Dict[str, Any]) -> None:
        self._close(JobStatus.FAILED, counters)
        self.error_message = str(error) or error.__class__.__name__

    def _close(self, status: JobStatus, counters: Dict[str, Any]) -> None:
        self.status = status
        self.ended_at = datetime.utcnow()
        self.counters_json = json.dumps(counters)

    def __repr__(self) -> str:
        return f"<JobRun(run_id={self.run_id}, pipeline='{self.pipeline_name}', status='{self.status}')>"
