from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..database import MemStorage
from ..dependencies import get_current_user, get_store
from ..errors import parse_body
from ..models import Portfolio, User
from ..schemas import PortfolioCreate, PortfolioUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/portfolios", response_model=List[Portfolio])
async def get_portfolios(
    search: Optional[str] = None,
    user: User = Depends(get_current_user),
    store: MemStorage = Depends(get_store),
):
    portfolios = store.get_portfolios_by_user_id(user.id)
    if search:
        term = search.lower()
        portfolios = [p for p in portfolios if term in p.name.lower() or term in p.type.lower()]
    return portfolios


@router.post("/portfolios", response_model=Portfolio)
async def create_portfolio(data: dict, user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    portfolio_data = parse_body(PortfolioCreate, data, "Invalid portfolio data").model_dump()
    portfolio_data["userId"] = portfolio_data["userId"] or user.id

    portfolio = store.create_portfolio(portfolio_data)
    logger.info(f"Created portfolio {portfolio.id} ({portfolio.name})")
    return portfolio


@router.get("/portfolios/{portfolio_id}", response_model=Portfolio)
async def get_portfolio(portfolio_id: str, store: MemStorage = Depends(get_store)):
    portfolio = store.get_portfolio(portfolio_id)
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio


@router.put("/portfolios/{portfolio_id}", response_model=Portfolio)
async def update_portfolio(portfolio_id: str, data: dict, store: MemStorage = Depends(get_store)):
    updates = parse_body(PortfolioUpdate, data, "Invalid portfolio data")
    portfolio = store.update_portfolio(portfolio_id, updates.changes())
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio


@router.delete("/portfolios/{portfolio_id}")
async def delete_portfolio(portfolio_id: str, store: MemStorage = Depends(get_store)):
    if not store.delete_portfolio(portfolio_id):
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return {"message": "Portfolio deleted"}
