"""
Contribution Ledger API

Main API endpoints:
- /data/* - Submit, verify and look up data points
- /contributors/* - Per-contributor submissions and reward balances
- /rewards/claim - Withdraw accrued rewards
- /categories - Category catalog
- /treasury/* - Treasury funding and history

SECURITY:
- Caller identity comes from the X-Caller-Address header
- Owner-only operations are checked by the ledger itself
"""

import os
import logging
from typing import Optional

from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Header, Request, Depends
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ledger import (
    LedgerManager, get_ledger_manager,
    LedgerError, EventType,
    EmptyFingerprint, InvalidCategory, InvalidAmount,
    Unauthorized, InvalidId,
    AlreadyVerified, DuplicateCategory, NoRewards, InsufficientTreasury,
    TransferFailure
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Ledger-API")

# ==================== SECURITY CONFIG ====================

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    os.getenv("FRONTEND_URL", "http://localhost:3000"),
]

# Allow all origins if CORS_ALLOW_ALL is set (for development/testing)
if os.getenv("CORS_ALLOW_ALL", "").lower() == "true":
    ALLOWED_ORIGINS = ["*"]

# HTTP status per ledger error
ERROR_STATUS = {
    EmptyFingerprint: 400,
    InvalidCategory: 400,
    InvalidAmount: 400,
    Unauthorized: 403,
    InvalidId: 404,
    AlreadyVerified: 409,
    DuplicateCategory: 409,
    NoRewards: 409,
    InsufficientTreasury: 409,
    TransferFailure: 502,
}


def get_caller(x_caller_address: str = Header(..., min_length=1)) -> str:
    """Identity of the caller making the request."""
    return x_caller_address


# ==================== LIFESPAN (Startup/Shutdown) ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info("Starting Contribution Ledger API...")
    yield
    logger.info("Shutting down Contribution Ledger API...")


# ==================== FASTAPI APP ====================

app = FastAPI(
    title="Contribution Ledger API",
    description="Incentivized data collection with verified rewards",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Caller-Address"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message}
    )


# ==================== REQUEST MODELS ====================

class SubmitRequest(BaseModel):
    fingerprint: str = Field(..., max_length=512)
    category: str = Field(..., max_length=100)


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


# ==================== HEALTH CHECK ====================

@app.get("/")
def read_root():
    return {
        "status": "online",
        "service": "Contribution Ledger API",
        "version": "1.0.0"
    }


@app.get("/health")
def health(manager: LedgerManager = Depends(get_ledger_manager)):
    return {"status": "healthy", "stats": manager.get_contract_stats().to_dict()}


# ==================== DATA POINTS ====================

@app.post("/data")
def submit_data(
    request: SubmitRequest,
    caller: str = Depends(get_caller),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Submit a fingerprint of externally stored data under a category."""
    data_id = manager.submit_data(caller, request.fingerprint, request.category)
    return {
        "success": True,
        "id": data_id,
        "data_point": manager.get_data_point(data_id).to_dict()
    }


@app.get("/data/{data_id}")
def get_data_point(data_id: int, manager: LedgerManager = Depends(get_ledger_manager)):
    """Get data point details."""
    return {"data_point": manager.get_data_point(data_id).to_dict()}


@app.post("/data/{data_id}/verify")
def verify_data(
    data_id: int,
    caller: str = Depends(get_caller),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Verify a data point and credit its reward (owner only)."""
    manager.verify_data(caller, data_id)
    return {
        "success": True,
        "data_point": manager.get_data_point(data_id).to_dict()
    }


# ==================== CONTRIBUTORS ====================

@app.get("/contributors/{address}/data")
def get_contributor_data(address: str, manager: LedgerManager = Depends(get_ledger_manager)):
    """Get all data point ids submitted by a contributor."""
    ids = manager.get_contributor_data(address)
    return {"contributor": address, "count": len(ids), "ids": ids}


@app.get("/contributors/{address}/rewards")
def get_reward_balance(address: str, manager: LedgerManager = Depends(get_ledger_manager)):
    """Get a contributor's unclaimed reward balance."""
    return {"contributor": address, "balance": manager.get_reward_balance(address)}


@app.post("/rewards/claim")
def claim_rewards(
    caller: str = Depends(get_caller),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Withdraw the caller's whole accrued balance."""
    amount = manager.claim_rewards(caller)
    return {"success": True, "contributor": caller, "amount": amount}


@app.get("/leaderboard")
def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Get top contributors by rewards earned."""
    return {"leaderboard": manager.get_top_contributors(limit)}


# ==================== CATEGORIES ====================

@app.get("/categories")
def list_categories(manager: LedgerManager = Depends(get_ledger_manager)):
    categories = manager.list_categories()
    return {"count": len(categories), "categories": [c.to_dict() for c in categories]}


@app.post("/categories")
def add_category(
    request: CategoryRequest,
    caller: str = Depends(get_caller),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Add a category (owner only)."""
    category = manager.add_category(caller, request.name)
    return {"success": True, "category": category.to_dict()}


# ==================== TREASURY ====================

@app.post("/treasury/fund")
def fund_treasury(
    amount: int = Query(..., ge=0),
    caller: str = Depends(get_caller),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Add funds to the treasury (owner only)."""
    stats = manager.fund_contract(caller, amount)
    return {
        "success": True,
        "message": f"Added {amount} to treasury",
        "stats": stats.to_dict()
    }


@app.get("/treasury/transactions")
def get_treasury_transactions(
    limit: int = Query(50, ge=1, le=500),
    manager: LedgerManager = Depends(get_ledger_manager)
):
    return {"transactions": manager.get_treasury_transactions(limit)}


@app.get("/stats")
def get_contract_stats(manager: LedgerManager = Depends(get_ledger_manager)):
    """Get (total data points, treasury balance, nominal pool)."""
    return manager.get_contract_stats().to_dict()


@app.get("/events")
def get_events(
    limit: int = Query(50, ge=1, le=500),
    event_type: Optional[EventType] = None,
    manager: LedgerManager = Depends(get_ledger_manager)
):
    """Get recent ledger events, newest first."""
    events = manager.get_events(limit, event_type)
    return {"count": len(events), "events": events}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
