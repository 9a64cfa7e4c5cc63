# dealsync/services/runtime.py
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from dealsync.core.config import Settings, get_settings
from dealsync.services.aggregator import SearchAggregator
from dealsync.services.execution_log import ExecutionLogger
from dealsync.services.marketplace import EbayBrowseClient, MarketplaceSearchClient
from dealsync.services.reconcile import ReconciliationEngine
from dealsync.services.runner import RuleRunner
from dealsync.services.scheduler import Scheduler
from dealsync.services.sweeper import StalenessSweeper


@dataclass
class Runtime:
    """Everything the API needs to drive the sync engine."""

    settings: Settings
    client: MarketplaceSearchClient
    runner: RuleRunner
    scheduler: Scheduler
    sweeper: StalenessSweeper
    execution_logger: ExecutionLogger


def build_runtime(
    session_factory: sessionmaker,
    settings: Optional[Settings] = None,
    client: Optional[MarketplaceSearchClient] = None,
    **scheduler_kwargs,
) -> Runtime:
    settings = settings or get_settings()
    client = client or EbayBrowseClient(settings)

    execution_logger = ExecutionLogger(session_factory)
    aggregator = SearchAggregator(
        client,
        delay_seconds=settings.keyword_delay_seconds,
        limit=settings.search_limit,
    )
    engine = ReconciliationEngine(
        session_factory,
        affiliate_url=client.affiliate_url,
        stale_after=timedelta(hours=settings.execution_stale_after_hours),
    )
    sweeper = StalenessSweeper(
        session_factory,
        max_age=timedelta(days=settings.sweep_max_age_days),
    )
    runner = RuleRunner(session_factory, aggregator, engine, execution_logger)
    scheduler = Scheduler(
        session_factory,
        runner,
        sweeper,
        execution_logger,
        sweep_cron=settings.sweep_cron,
        timezone=settings.scheduler_timezone,
        **scheduler_kwargs,
    )
    return Runtime(
        settings=settings,
        client=client,
        runner=runner,
        scheduler=scheduler,
        sweeper=sweeper,
        execution_logger=execution_logger,
    )
