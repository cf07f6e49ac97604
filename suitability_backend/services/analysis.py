from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
import asyncio
import json
import logging

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from ..config import Settings
from ..models import AtrqResult, Portfolio, PortfolioBreach
from ..schemas import (
    BreachAnalysis,
    CompositionSlice,
    KeyMetrics,
    PortfolioAnalysis,
    RiskAssessment,
)
from .breaches import is_resolved

logger = logging.getLogger(__name__)

# No holdings-level data exists, so the split is a fixed placeholder
COMPOSITION = [
    ("Equities", 45),
    ("Fixed Income", 30),
    ("Real Estate", 15),
    ("Cash", 10),
]

DEFAULT_ATRQ_SCORE = 65

KEY_METRICS = {
    "expectedReturn": "7.2%",
    "volatility": "12.8%",
    "sharpeRatio": "0.56",
    "maxDrawdown": "-8.3%",
}


def _format_currency(value: float) -> str:
    # Up to three fraction digits, trailing zeros dropped
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def breaches_for_portfolio(portfolio: Portfolio, breaches: Iterable[PortfolioBreach]) -> List[PortfolioBreach]:
    return [breach for breach in breaches if breach.portfolioId == portfolio.id]


class AnalysisProvider(ABC):
    """Produces the AI summary report for one portfolio."""

    @abstractmethod
    async def generate(
        self,
        portfolio: Portfolio,
        breaches: List[PortfolioBreach],
        atrq: Optional[AtrqResult],
    ) -> PortfolioAnalysis:
        ...


class PlaceholderAnalysisProvider(AnalysisProvider):
    """Deterministic report built from the portfolio record and its breaches."""

    def build(
        self,
        portfolio: Portfolio,
        breaches: Iterable[PortfolioBreach],
        atrq: Optional[AtrqResult],
    ) -> PortfolioAnalysis:
        own_breaches = breaches_for_portfolio(portfolio, breaches)
        total = len(own_breaches)
        resolved = sum(1 for breach in own_breaches if is_resolved(breach.status))
        risk_level = portfolio.riskLevel or "Moderate"

        # Stored ATRQ results carry no riskScore, so this is normally the default
        atrq_score = getattr(atrq, "riskScore", None) or DEFAULT_ATRQ_SCORE

        if total > 0:
            breach_summary = f"{total} suitability breaches detected requiring attention."
            breach_recommendation = "Address outstanding suitability breaches promptly"
        else:
            breach_summary = "No suitability breaches detected. Portfolio remains compliant with all monitoring rules."
            breach_recommendation = "Maintain current compliance monitoring"

        return PortfolioAnalysis(
            executiveSummary=(
                f"This portfolio analysis for {portfolio.name} reveals a well-diversified investment "
                f"strategy with a current value of £{_format_currency(portfolio.value or 0)}. "
                f"The portfolio demonstrates {risk_level.lower()} risk exposure aligned with the "
                f"client's risk tolerance profile."
            ),
            riskAssessment=RiskAssessment(
                overallRisk=risk_level,
                atrqScore=atrq_score,
                riskAlignment=(
                    "The portfolio risk level aligns well with the client's ATRQ assessment, "
                    "indicating appropriate risk management."
                ),
            ),
            portfolioComposition=[
                CompositionSlice(category=category, percentage=percentage, value=portfolio.value * percentage / 100)
                for category, percentage in COMPOSITION
            ],
            breachAnalysis=BreachAnalysis(
                totalBreaches=total,
                criticalBreaches=total - resolved,
                resolvedBreaches=resolved,
                breachSummary=breach_summary,
            ),
            recommendations=[
                "Consider rebalancing equity allocation to maintain target risk profile",
                "Monitor fixed income duration risk in current interest rate environment",
                breach_recommendation,
                "Review portfolio performance against benchmarks quarterly",
            ],
            keyMetrics=KeyMetrics(totalValue=portfolio.value, **KEY_METRICS),
        )

    async def generate(self, portfolio, breaches, atrq):
        return self.build(portfolio, breaches, atrq)


class AnthropicAnalysisProvider(AnalysisProvider):
    """Asks Claude for the report; any failure yields the placeholder report."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-3-haiku-20240307",
        timeout: float = 20.0,
        max_tokens: int = 1500,
        client=None,
        fallback: Optional[PlaceholderAnalysisProvider] = None,
    ):
        if client is None:
            if not api_key:
                logger.error("Anthropic API key not found in environment variables")
                raise ValueError("Anthropic API key not configured")
            client = AsyncAnthropic(api_key=api_key)

        self.client = client
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.fallback = fallback or PlaceholderAnalysisProvider()
        self.system_prompt = """You are an expert financial advisor reviewing a client portfolio for suitability. Your responsibilities include:
        - Summarising the portfolio and its risk exposure
        - Comparing the portfolio risk level with the client's attitude-to-risk questionnaire (ATRQ)
        - Explaining any suitability breaches and how they were resolved
        - Recommending concrete next steps for the advisor

        Reply with a single JSON object and nothing else. It must have exactly these keys:
        executiveSummary (string), riskAssessment {overallRisk, atrqScore, riskAlignment},
        portfolioComposition [{category, percentage, value}], breachAnalysis {totalBreaches,
        criticalBreaches, resolvedBreaches, breachSummary}, recommendations (list of strings),
        keyMetrics {totalValue, expectedReturn, volatility, sharpeRatio, maxDrawdown}.
        """

    def _build_message(
        self,
        portfolio: Portfolio,
        breaches: List[PortfolioBreach],
        atrq: Optional[AtrqResult],
    ) -> str:
        baseline = self.fallback.build(portfolio, breaches, atrq)
        facts = {
            "portfolio": portfolio.model_dump(mode="json"),
            "breaches": [breach.model_dump(mode="json") for breach in breaches_for_portfolio(portfolio, breaches)],
            "atrq": atrq.model_dump(mode="json") if atrq else None,
            "baselineReport": baseline.model_dump(mode="json"),
        }
        return (
            self.system_prompt
            + "\n\nHuman: Generate the portfolio analysis for the following data.\n\n"
            + json.dumps(facts, indent=2)
            + "\n\nAssistant:"
        )

    async def _get_response(self, message: str) -> str:
        response = await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": message}],
            ),
            timeout=self.timeout,
        )
        if not response.content:
            raise ValueError("No response generated from Claude")
        return response.content[0].text

    async def generate(self, portfolio, breaches, atrq):
        breaches = list(breaches)
        try:
            logger.info(f"Requesting AI analysis for portfolio {portfolio.id}")
            content = await self._get_response(self._build_message(portfolio, breaches, atrq))
            analysis = PortfolioAnalysis.model_validate_json(_extract_json(content))
            logger.info(f"Received AI analysis of length {len(content)}")
            return analysis
        except asyncio.TimeoutError:
            logger.error(f"AI analysis timed out after {self.timeout}s; using placeholder report")
        except ValidationError as e:
            logger.error(f"AI analysis had an unexpected shape: {str(e)}")
        except Exception as e:
            logger.error(f"Error generating AI analysis: {str(e)}", exc_info=True)
        return self.fallback.build(portfolio, breaches, atrq)


def _extract_json(content: str) -> str:
    start, end = content.find("{"), content.rfind("}")
    if start == -1 or end < start:
        raise ValueError("No JSON object in AI response")
    return content[start:end + 1]


def build_analysis_provider(settings: Settings) -> AnalysisProvider:
    if settings.anthropic_api_key:
        logger.info("Anthropic API key available - using AI analysis provider")
        return AnthropicAnalysisProvider(
            api_key=settings.anthropic_api_key,
            model=settings.analysis_model,
            timeout=settings.analysis_timeout,
            max_tokens=settings.analysis_max_tokens,
        )
    return PlaceholderAnalysisProvider()


async def generate_portfolio_analysis(
    portfolio: Portfolio,
    breaches: Iterable[PortfolioBreach],
    atrq: Optional[AtrqResult],
    provider: Optional[AnalysisProvider] = None,
) -> PortfolioAnalysis:
    provider = provider or PlaceholderAnalysisProvider()
    return await provider.generate(portfolio, list(breaches), atrq)
