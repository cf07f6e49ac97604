import logging

from fastapi import APIRouter, Depends, HTTPException

from ..database import MemStorage
from ..dependencies import get_analysis_provider, get_store
from ..errors import parse_body
from ..schemas import AiSummaryRequest, PortfolioAnalysis
from ..services.analysis import AnalysisProvider, generate_portfolio_analysis

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ai-summary", response_model=PortfolioAnalysis)
async def ai_summary(
    data: dict,
    store: MemStorage = Depends(get_store),
    provider: AnalysisProvider = Depends(get_analysis_provider),
):
    request = parse_body(AiSummaryRequest, data, "Portfolio ID is required")
    logger.info(f"Received AI summary request for portfolio {request.portfolioId}")

    portfolio = store.get_portfolio(request.portfolioId)
    if not portfolio:
        raise HTTPException(status_code=404, detail="Portfolio not found")

    breaches = store.get_portfolio_breaches_by_portfolio_id(portfolio.id)
    atrq = store.get_atrq_result_by_user_id(portfolio.userId)

    try:
        analysis = await generate_portfolio_analysis(portfolio, breaches, atrq, provider)
    except Exception as e:
        logger.error(f"Unexpected error in AI summary endpoint: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate AI summary")

    logger.info(f"Generated AI summary for portfolio {portfolio.id}")
    return analysis
