# dealsync/api/rules_router.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from dealsync.api.dependencies import get_runtime
from dealsync.core.db import get_db
from dealsync.core.errors import RuleBusyError, RuleNotFoundError, ScheduleError
from dealsync.schemas.deal import Pagination
from dealsync.schemas.execution import LogPage, RunResponse
from dealsync.schemas.rule import RuleCreate, RuleOut, RulePatch
from dealsync.services import rule_store
from dealsync.services.execution_log import list_logs
from dealsync.services.runtime import Runtime
from dealsync.services.scheduler import parse_cron

router = APIRouter(prefix="/v1/rules", tags=["rules"])


def _validate_cron(expression: str, runtime: Runtime) -> None:
    try:
        parse_cron(expression, runtime.settings.scheduler_timezone)
    except ScheduleError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/", response_model=List[RuleOut])
def get_rules(db: Session = Depends(get_db)):
    return rule_store.list_rules(db)


@router.post("/", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
def create_rule(
    payload: RuleCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    _validate_cron(payload.schedule_cron, runtime)
    rule = rule_store.create_rule(db, payload)
    runtime.scheduler.on_rule_changed(rule)
    return rule


@router.get("/{rule_id}", response_model=RuleOut)
def get_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = rule_store.get_rule(db, rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.patch("/{rule_id}", response_model=RuleOut)
def update_rule(
    rule_id: int,
    patch: RulePatch,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    if patch.schedule_cron is not None:
        _validate_cron(patch.schedule_cron, runtime)
    try:
        rule = rule_store.update_rule(db, rule_id, patch)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Rule not found")
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    runtime.scheduler.on_rule_changed(rule)
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    runtime.scheduler.on_rule_deleted(rule_id)
    try:
        rule_store.delete_rule(db, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Rule not found")


@router.post("/{rule_id}/run", response_model=RunResponse)
def run_rule_now(rule_id: int, runtime: Runtime = Depends(get_runtime)):
    # sync handler: FastAPI runs it in the threadpool, the request waits for the result
    try:
        result = runtime.runner.run_rule(rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Rule not found")
    except RuleBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return RunResponse(
        success=result.success,
        rule_id=rule_id,
        found=result.found,
        added=result.added,
        updated=result.updated,
        removed=result.removed,
        error=result.error,
    )


@router.get("/{rule_id}/logs", response_model=LogPage)
def get_rule_logs(
    rule_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    if rule_store.get_rule(db, rule_id) is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    logs, total = list_logs(db, rule_id=rule_id, page=page, limit=limit)
    return LogPage(logs=logs, pagination=Pagination.build(page, limit, total))
