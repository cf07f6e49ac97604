from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings
from ..database import MemStorage
from ..dependencies import get_app_settings, get_current_user, get_store
from ..errors import parse_body
from ..models import PortfolioBreach, User
from ..schemas import BreachSummary, PortfolioBreachCreate, PortfolioBreachUpdate, RedirectLink
from ..services.breaches import filter_breaches, requires_external_redirect, summarize

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/portfolio-breaches", response_model=List[PortfolioBreach])
async def get_portfolio_breaches(
    status: Optional[str] = None,
    search: Optional[str] = None,
    user: User = Depends(get_current_user),
    store: MemStorage = Depends(get_store),
):
    breaches = store.get_portfolio_breaches_by_user_id(user.id)
    if not status and not search:
        return breaches

    portfolio_names = {p.id: p.name for p in store.get_portfolios_by_user_id(user.id)}
    field_names = {f.id: f.fieldName for f in store.get_monitoring_fields_by_user_id(user.id)}
    return filter_breaches(breaches, status, search, portfolio_names, field_names)


@router.get("/portfolio-breaches/summary", response_model=BreachSummary)
async def get_breach_summary(user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    return summarize(store.get_portfolio_breaches_by_user_id(user.id))


@router.post("/portfolio-breaches", response_model=PortfolioBreach)
async def create_portfolio_breach(data: dict, store: MemStorage = Depends(get_store)):
    breach_data = parse_body(PortfolioBreachCreate, data, "Invalid breach data")
    breach = store.create_portfolio_breach(breach_data.model_dump())
    logger.info(f"Recorded breach {breach.id} on portfolio {breach.portfolioId}")
    return breach


@router.get("/portfolio-breaches/{breach_id}", response_model=PortfolioBreach)
async def get_portfolio_breach(breach_id: str, store: MemStorage = Depends(get_store)):
    breach = store.get_portfolio_breach(breach_id)
    if not breach:
        raise HTTPException(status_code=404, detail="Breach not found")
    return breach


@router.put("/portfolio-breaches/{breach_id}", response_model=PortfolioBreach)
async def update_portfolio_breach(breach_id: str, data: dict, store: MemStorage = Depends(get_store)):
    updates = parse_body(PortfolioBreachUpdate, data, "Failed to update breach")
    breach = store.update_portfolio_breach(breach_id, updates.changes())
    if not breach:
        raise HTTPException(status_code=404, detail="Breach not found")
    return breach


@router.delete("/portfolio-breaches/{breach_id}")
async def delete_portfolio_breach(breach_id: str, store: MemStorage = Depends(get_store)):
    if not store.delete_portfolio_breach(breach_id):
        raise HTTPException(status_code=404, detail="Breach not found")
    return {"message": "Breach deleted"}


@router.get("/portfolio-breaches/{breach_id}/redirect", response_model=RedirectLink)
async def get_breach_redirect(
    breach_id: str,
    store: MemStorage = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Link to the external portfolio-management system for an "Accept and change" decision."""
    breach = store.get_portfolio_breach(breach_id)
    if not breach:
        raise HTTPException(status_code=404, detail="Breach not found")
    if not settings.portfolio_redirect_url:
        raise HTTPException(status_code=404, detail="Portfolio redirect link not configured")
    if not requires_external_redirect(breach.status):
        logger.info(f"Redirect requested for breach {breach_id} with status {breach.status!r}")
        raise HTTPException(status_code=400, detail="Redirect only applies to \"Accept and change\" decisions")
    return RedirectLink(breachId=breach.id, url=settings.portfolio_redirect_url)
