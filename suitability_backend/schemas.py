from pydantic import BaseModel, Field
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

RiskLevel = Literal["Low", "Medium", "High"]
AlertLevel = Literal["Info", "Warning", "Critical"]


class PartialUpdate(BaseModel):
    """Base for PUT bodies: only the fields the client sent are applied."""

    # Fields that may legitimately be set back to null
    nullable: ClassVar[Tuple[str, ...]] = ()

    def changes(self) -> Dict[str, Any]:
        sent = self.model_dump(exclude_unset=True)
        return {
            key: value for key, value in sent.items()
            if value is not None or key in self.nullable
        }


class UserCreate(BaseModel):
    username: str
    password: str
    name: str


class PortfolioCreate(BaseModel):
    userId: Optional[str] = None
    name: str
    type: str
    value: float = Field(ge=0)
    performance: float
    riskLevel: RiskLevel


class PortfolioUpdate(PartialUpdate):
    name: Optional[str] = None
    type: Optional[str] = None
    value: Optional[float] = Field(default=None, ge=0)
    performance: Optional[float] = None
    riskLevel: Optional[RiskLevel] = None


class GoalCreate(BaseModel):
    userId: Optional[str] = None
    totalAssets: float
    targetProgress: float
    monthlyIncome: float
    riskScore: float
    assetsChange: float
    incomeChange: float


class GoalUpdate(PartialUpdate):
    totalAssets: Optional[float] = None
    targetProgress: Optional[float] = None
    monthlyIncome: Optional[float] = None
    riskScore: Optional[float] = None
    assetsChange: Optional[float] = None
    incomeChange: Optional[float] = None


class AtrqResultCreate(BaseModel):
    userId: Optional[str] = None
    overallScore: float
    riskProfile: str
    timeHorizon: float
    financialCapacity: float
    lossTolerance: float
    riskExperience: float


class AtrqResultUpdate(PartialUpdate):
    overallScore: Optional[float] = None
    riskProfile: Optional[str] = None
    timeHorizon: Optional[float] = None
    financialCapacity: Optional[float] = None
    lossTolerance: Optional[float] = None
    riskExperience: Optional[float] = None


class SuitabilityRuleCreate(BaseModel):
    userId: Optional[str] = None
    name: str
    isActive: bool = True
    conditions: Dict[str, Dict[str, Any]]
    actions: Dict[str, Any]


class SuitabilityRuleUpdate(PartialUpdate):
    name: Optional[str] = None
    isActive: Optional[bool] = None
    conditions: Optional[Dict[str, Dict[str, Any]]] = None
    actions: Optional[Dict[str, Any]] = None


class MonitoringFieldCreate(BaseModel):
    userId: Optional[str] = None
    fieldName: str
    isEnabled: bool = True
    threshold: Optional[float] = None
    alertLevel: AlertLevel


class MonitoringFieldUpdate(PartialUpdate):
    nullable: ClassVar[Tuple[str, ...]] = ("threshold",)

    fieldName: Optional[str] = None
    isEnabled: Optional[bool] = None
    threshold: Optional[float] = None
    alertLevel: Optional[AlertLevel] = None


class PortfolioBreachCreate(BaseModel):
    portfolioId: str
    monitoringFieldId: str
    breachCondition: str
    breachValue: float
    status: str = "Pending"


class PortfolioBreachUpdate(PartialUpdate):
    portfolioId: Optional[str] = None
    monitoringFieldId: Optional[str] = None
    breachCondition: Optional[str] = None
    breachValue: Optional[float] = None
    status: Optional[str] = None


class BreachSummary(BaseModel):
    total: int
    pendingCount: int
    resolvedCount: int


class RuleDescription(BaseModel):
    ruleId: str
    conditions: str
    actions: str
    text: str


class RedirectLink(BaseModel):
    breachId: str
    url: str


class AiSummaryRequest(BaseModel):
    portfolioId: str


class RiskAssessment(BaseModel):
    overallRisk: str
    atrqScore: float
    riskAlignment: str


class CompositionSlice(BaseModel):
    category: str
    percentage: float
    value: float


class BreachAnalysis(BaseModel):
    totalBreaches: int
    criticalBreaches: int
    resolvedBreaches: int
    breachSummary: str


class KeyMetrics(BaseModel):
    totalValue: float
    expectedReturn: str
    volatility: str
    sharpeRatio: str
    maxDrawdown: str


class PortfolioAnalysis(BaseModel):
    executiveSummary: str
    riskAssessment: RiskAssessment
    portfolioComposition: List[CompositionSlice]
    breachAnalysis: BreachAnalysis
    recommendations: List[str]
    keyMetrics: KeyMetrics
