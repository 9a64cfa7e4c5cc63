# dealsync/services/execution_log.py
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from dealsync.core.logging import get_logger
from dealsync.models.execution_log import ExecutionLog
from dealsync.models.rule import Rule
from dealsync.schemas.execution import ExecutionLogOut

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class ExecutionLogger:
    """Append-only record of rule executions. ``record`` never raises."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(
        self,
        rule_id: Optional[int],
        status: str,
        found: int = 0,
        added: int = 0,
        error_message: Optional[str] = None,
        updated: int = 0,
        removed: int = 0,
    ) -> Optional[int]:
        try:
            with self._session_factory() as db:
                if rule_id is not None and db.get(Rule, rule_id) is None:
                    # rule deleted while it was running
                    rule_id = None
                row = ExecutionLog(
                    rule_id=rule_id,
                    status=status,
                    items_found=found,
                    items_added=added,
                    items_updated=updated,
                    items_removed=removed,
                    error_message=error_message,
                )
                db.add(row)
                db.commit()
                return row.id
        except Exception:
            logger.exception(
                "Could not record execution log (rule=%s status=%s error=%s)",
                rule_id,
                status,
                error_message,
            )
            return None


def list_logs(
    db: Session,
    rule_id: Optional[int] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[ExecutionLogOut], int]:
    """Most recent first."""
    q = db.query(ExecutionLog, Rule.name).outerjoin(Rule, ExecutionLog.rule_id == Rule.id)
    if rule_id is not None:
        q = q.filter(ExecutionLog.rule_id == rule_id)

    total = q.count()
    rows = (
        q.order_by(ExecutionLog.created_at.desc(), ExecutionLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    logs: List[ExecutionLogOut] = []
    for log, rule_name in rows:
        out = ExecutionLogOut.model_validate(log)
        out.rule_name = rule_name
        logs.append(out)
    return logs, total
