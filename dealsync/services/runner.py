# dealsync/services/runner.py

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from dealsync.core.errors import RuleBusyError
from dealsync.core.logging import get_logger
from dealsync.schemas.rule import RuleOut
from dealsync.services import rule_store
from dealsync.services.aggregator import SearchAggregator
from dealsync.services.execution_log import STATUS_ERROR, STATUS_SUCCESS, ExecutionLogger
from dealsync.services.reconcile import ReconciliationEngine

logger = get_logger(__name__)


@dataclass
class RunResult:
    rule_id: int
    found: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class RuleRunner:
    """
    Executes rules: search → reconcile → log → last_run.

    At most one execution per rule is in flight. A second request for a
    running rule raises RuleBusyError instead of waiting.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        aggregator: SearchAggregator,
        engine: ReconciliationEngine,
        execution_logger: ExecutionLogger,
    ):
        self._session_factory = session_factory
        self.aggregator = aggregator
        self.engine = engine
        self.execution_logger = execution_logger
        self._guards: Dict[int, threading.Lock] = {}
        self._guards_lock = threading.Lock()

    def _guard(self, rule_id: int) -> threading.Lock:
        with self._guards_lock:
            return self._guards.setdefault(rule_id, threading.Lock())

    def is_running(self, rule_id: int) -> bool:
        return self._guard(rule_id).locked()

    def run_rule(self, rule_id: int) -> RunResult:
        guard = self._guard(rule_id)
        if not guard.acquire(blocking=False):
            raise RuleBusyError(rule_id)
        try:
            return self._execute(rule_id)
        finally:
            guard.release()

    def _load(self, rule_id: int) -> RuleOut:
        with self._session_factory() as db:
            return RuleOut.model_validate(rule_store.require_rule(db, rule_id))

    def _execute(self, rule_id: int) -> RunResult:
        try:
            rule = self._load(rule_id)
        except SQLAlchemyError as e:
            logger.exception("Could not load rule %s", rule_id)
            self.execution_logger.record(rule_id, STATUS_ERROR, error_message=str(e))
            return RunResult(rule_id=rule_id, error=str(e))

        result = RunResult(rule_id=rule_id)
        logger.info("Executing rule %s %r", rule.id, rule.name)

        try:
            if not self.aggregator.client.is_configured():
                raise RuntimeError(
                    "No product source configured. Set EBAY_APP_ID and EBAY_CERT_ID."
                )

            if rule.is_inert:
                logger.warning("Rule %s has no keywords; nothing to search", rule.id)
            else:
                aggregation = self.aggregator.run(rule)
                result.found = len(aggregation.listings)

                outcome = self.engine.reconcile(
                    rule, aggregation.listings, sweep=not aggregation.all_failed
                )
                result.added = outcome.added
                result.updated = outcome.updated
                result.removed = outcome.removed

                if aggregation.all_failed:
                    first = aggregation.errors[0]
                    result.error = (
                        f"All {len(aggregation.errors)} keyword searches failed "
                        f"({first.kind}): {first.message}"
                    )
        except Exception as e:
            logger.exception("Rule %s failed", rule.id)
            result.error = str(e) or e.__class__.__name__

        self.execution_logger.record(
            rule.id,
            STATUS_ERROR if result.error else STATUS_SUCCESS,
            found=result.found,
            added=result.added,
            error_message=result.error,
            updated=result.updated,
            removed=result.removed,
        )

        # advanced on error as well
        try:
            with self._session_factory() as db:
                rule_store.set_last_run(db, rule.id)
        except SQLAlchemyError:
            logger.exception("Could not update last_run for rule %s", rule.id)

        if result.error:
            logger.error("Rule %r failed: %s", rule.name, result.error)
        else:
            logger.info(
                "Rule %r completed: %d found, %d added, %d updated, %d removed",
                rule.name,
                result.found,
                result.added,
                result.updated,
                result.removed,
            )
        return result

