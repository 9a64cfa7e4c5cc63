# dealsync/services/scheduler.py
"""
Cron timers for rules plus the fixed staleness sweep.

The Scheduler owns ``rule id -> Job``; every add/replace/cancel goes through
``_lock`` so the map and APScheduler's job store stay in step.
"""

import threading
from typing import Dict, List, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import sessionmaker

from dealsync.core.errors import RuleBusyError, RuleNotFoundError, ScheduleError
from dealsync.core.logging import get_logger
from dealsync.services import rule_store
from dealsync.services.execution_log import STATUS_ERROR, ExecutionLogger
from dealsync.services.runner import RuleRunner
from dealsync.services.sweeper import StalenessSweeper

logger = get_logger(__name__)

SWEEP_JOB_ID = "staleness-sweep"


def rule_job_id(rule_id: int) -> str:
    return f"rule-{rule_id}"


def parse_cron(expression: str, timezone: str = "UTC") -> CronTrigger:
    try:
        return CronTrigger.from_crontab((expression or "").strip(), timezone=timezone)
    except (ValueError, TypeError) as e:
        raise ScheduleError(f"Invalid cron expression {expression!r}: {e}") from e


class Scheduler:
    def __init__(
        self,
        session_factory: sessionmaker,
        runner: RuleRunner,
        sweeper: StalenessSweeper,
        execution_logger: ExecutionLogger,
        sweep_cron: str = "0 2 * * *",
        timezone: str = "UTC",
        backend: Optional[BackgroundScheduler] = None,
    ):
        self._session_factory = session_factory
        self.runner = runner
        self.sweeper = sweeper
        self.execution_logger = execution_logger
        self.sweep_cron = sweep_cron
        self.timezone = timezone
        self._backend = backend or BackgroundScheduler(timezone=timezone)
        self._jobs: Dict[int, Job] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._backend.running

    # ---------- lifecycle ----------

    def start(self, paused: bool = False) -> int:
        """Arm the sweeper and every active rule. Returns the number of rules armed."""
        if not self._backend.running:
            self._backend.start(paused=paused)

        self._backend.add_job(
            self._run_sweep,
            trigger=parse_cron(self.sweep_cron, self.timezone),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        if not self.runner.aggregator.client.is_configured():
            logger.error("Marketplace credentials missing; no rule will be scheduled")
            return 0

        with self._session_factory() as db:
            rules = rule_store.list_active_rules(db)

        armed = sum(1 for rule in rules if self.upsert_rule(rule))
        logger.info("Scheduled %d of %d active rules + staleness sweep (%s)", armed, len(rules), self.sweep_cron)
        return armed

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            self._jobs.clear()
        if self._backend.running:
            self._backend.shutdown(wait=wait)

    # ---------- rule timers ----------

    def upsert_rule(self, rule) -> bool:
        """
        Replace the rule's timer. Inactive rules end up without one, and so do
        all rules while marketplace credentials are missing; a bad cron
        expression is logged and leaves the rule unarmed. Returns True if armed.
        """
        with self._lock:
            self._cancel(rule.id)

            if not rule.is_active:
                logger.info("Rule %s is inactive; timer removed", rule.id)
                return False

            if not self.runner.aggregator.client.is_configured():
                logger.error("Rule %s not scheduled: marketplace credentials missing", rule.id)
                return False

            try:
                trigger = parse_cron(rule.schedule_cron, self.timezone)
            except ScheduleError as e:
                logger.error("Rule %s not scheduled: %s", rule.id, e)
                return False

            self._jobs[rule.id] = self._backend.add_job(
                self._fire,
                trigger=trigger,
                args=[rule.id],
                id=rule_job_id(rule.id),
                name=f"rule {rule.id}: {rule.name}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info("Scheduled rule %s %r with cron %r", rule.id, rule.name, rule.schedule_cron)
            return True

    def remove_rule(self, rule_id: int) -> None:
        with self._lock:
            if self._cancel(rule_id):
                logger.info("Timer for rule %s cancelled", rule_id)

    # collaborator-facing names
    on_rule_changed = upsert_rule
    on_rule_deleted = remove_rule

    def _cancel(self, rule_id: int) -> bool:
        job = self._jobs.pop(rule_id, None)
        if job is None:
            return False
        try:
            job.remove()
        except JobLookupError:
            pass
        return True

    def jobs(self) -> List[dict]:
        with self._lock:
            return [
                {
                    "rule_id": rule_id,
                    "job_id": job.id,
                    "next_run": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
                for rule_id, job in sorted(self._jobs.items())
            ]

    def is_armed(self, rule_id: int) -> bool:
        with self._lock:
            return rule_id in self._jobs

    # ---------- firings ----------

    def _fire(self, rule_id: int) -> None:
        try:
            self.runner.run_rule(rule_id)
        except RuleBusyError:
            logger.warning("Rule %s still running; skipping this firing", rule_id)
        except RuleNotFoundError:
            logger.warning("Rule %s no longer exists; cancelling its timer", rule_id)
            self.remove_rule(rule_id)
        except Exception as e:
            logger.exception("Scheduled run of rule %s crashed", rule_id)
            self.execution_logger.record(rule_id, STATUS_ERROR, error_message=str(e))

    def run_sweep(self) -> int:
        return self.sweeper.sweep()

    def _run_sweep(self) -> None:
        try:
            self.sweeper.sweep()
        except Exception:
            logger.exception("Staleness sweep failed")
