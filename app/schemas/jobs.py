# app/schemas/jobs.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.schemas.common import CamelModel


class FailedJob(CamelModel):
    id: str
    job_name: str
    original_queue: str
    original_job_id: Optional[str] = None
    data: Dict[str, Any]
    error: str
    error_stack: Optional[str] = None
    failed_at: datetime
    attempts_made: int


class FailedJobList(CamelModel):
    jobs: List[FailedJob]
    total: int


class CleanupResult(CamelModel):
    removed_count: int
    message: str
