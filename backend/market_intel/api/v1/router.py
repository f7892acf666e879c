from fastapi import APIRouter
from market_intel.api.v1 import intelligence

api_router = APIRouter()

api_router.include_router(intelligence.router, prefix="/intelligence", tags=["intelligence"])
