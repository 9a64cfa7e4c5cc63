# dealsync/schemas/execution.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from dealsync.schemas.deal import Pagination


class ExecutionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rule_id: Optional[int] = None
    rule_name: Optional[str] = None
    status: str
    items_found: int
    items_added: int
    items_updated: int
    items_removed: int
    error_message: Optional[str] = None
    created_at: datetime


class LogPage(BaseModel):
    logs: List[ExecutionLogOut]
    pagination: Pagination


class RunResponse(BaseModel):
    success: bool
    rule_id: int
    found: int
    added: int
    updated: int
    removed: int
    error: Optional[str] = None


class ScheduledJob(BaseModel):
    rule_id: int
    schedule_cron: str
    next_run: Optional[datetime] = None
