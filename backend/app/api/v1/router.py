"""
app/api/v1/router.py
─────────────────────
Aggregates every v1 endpoint router under ``/api/v1``.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import holdings, portfolio, stock_data

api_router = APIRouter()
api_router.include_router(stock_data.router, prefix="/stock-data", tags=["stock-data"])
api_router.include_router(holdings.router, prefix="/holdings", tags=["holdings"])
api_router.include_router(portfolio.router, prefix="/portfolio", tags=["portfolio"])
