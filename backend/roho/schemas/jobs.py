"""
Maintenance job run records (`job_runs` collection)
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from roho.schemas.delivery import FirestoreRecord

JobStatus = Literal["success", "fail", "skipped"]


class JobRun(FirestoreRecord):
    """One execution of a scheduled or CLI job"""
    job_name: str
    status: JobStatus
    started_at: datetime
    finished_at: datetime
    counts: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_document(self) -> Dict[str, Any]:
        doc = super().to_document()
        doc["duration_ms"] = self.duration_ms
        return doc
