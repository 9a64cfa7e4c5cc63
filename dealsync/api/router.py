# dealsync/api/router.py
from fastapi import APIRouter
from dealsync.api.rules_router import router as rules_router
from dealsync.api.logs_router import router as logs_router
from dealsync.api.deals_router import router as deals_router

api_router = APIRouter()
api_router.include_router(rules_router)
api_router.include_router(logs_router)
api_router.include_router(deals_router)
