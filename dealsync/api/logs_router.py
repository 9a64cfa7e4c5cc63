# dealsync/api/logs_router.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dealsync.api.dependencies import get_runtime
from dealsync.core.db import get_db
from dealsync.schemas.deal import Pagination
from dealsync.schemas.execution import LogPage, ScheduledJob
from dealsync.services import rule_store
from dealsync.services.execution_log import list_logs
from dealsync.services.runtime import Runtime

router = APIRouter(prefix="/v1", tags=["logs"])


@router.get("/logs", response_model=LogPage)
def get_all_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    logs, total = list_logs(db, page=page, limit=limit)
    return LogPage(logs=logs, pagination=Pagination.build(page, limit, total))


@router.get("/schedule", response_model=List[ScheduledJob])
def get_schedule(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    jobs = []
    for job in runtime.scheduler.jobs():
        rule = rule_store.get_rule(db, job["rule_id"])
        if rule is None:
            continue
        jobs.append(ScheduledJob(rule_id=rule.id, schedule_cron=rule.schedule_cron, next_run=job["next_run"]))
    return jobs
