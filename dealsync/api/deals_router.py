# dealsync/api/deals_router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from dealsync.api.dependencies import get_runtime
from dealsync.core.db import get_db
from dealsync.core.logging import get_logger
from dealsync.schemas.deal import CountResponse, DealOut, DealPage, Pagination, RestoreRequest
from dealsync.services import deal_store
from dealsync.services.runtime import Runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/deals", tags=["deals"])


@router.get("/", response_model=DealPage)
def get_deals(
    active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    min_discount: float = Query(0, ge=0, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    deals, total = deal_store.list_deals(
        db, active=active, page=page, limit=limit, min_discount=min_discount, search=search
    )
    return DealPage(
        deals=[DealOut.model_validate(d) for d in deals],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/restore-recent", response_model=CountResponse)
def restore_recent_deals(body: RestoreRequest, db: Session = Depends(get_db)):
    restored = deal_store.restore_recent(db, body.hours)
    logger.info("Restored %d deals deactivated in the last %d hours", restored, body.hours)
    return CountResponse(
        success=True,
        count=restored,
        message=f"Restored {restored} deals that were deactivated in the last {body.hours} hours",
    )


@router.post("/sweep", response_model=CountResponse)
def sweep_stale_deals(runtime: Runtime = Depends(get_runtime)):
    count = runtime.scheduler.run_sweep()
    return CountResponse(success=True, count=count, message=f"Deactivated {count} stale deals")


@router.post("/{deal_id}/activate", response_model=DealOut)
def activate_deal(deal_id: int, db: Session = Depends(get_db)):
    deal = deal_store.activate(db, deal_id)
    if deal is None:
        raise HTTPException(status_code=404, detail="Deal not found")
    return deal
